# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""
Field-level validation for streamer records, with automatic corrections for
common data-entry mistakes (email typos, country spelling, missing level).
"""

import math
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Optional

from shared.constants import (
    DEFAULT_COUNTRY,
    DEFAULT_LEVEL,
    EMAIL_TYPO_CORRECTIONS,
    MIN_NAME_LENGTH,
    VALID_COUNTRIES,
    VALID_LEVELS,
)
from shared.types import BatchValidationReport, ValidationResult

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")


@dataclass
class EmailValidation:
    is_valid: bool
    corrected: Optional[str] = None
    error: Optional[str] = None
    original: Optional[str] = None


_TYPO_DOMAINS = {
    typo: correct
    for correct, typos in EMAIL_TYPO_CORRECTIONS.items()
    for typo in typos
}


def attempt_email_correction(email: str) -> Optional[str]:
    """Returns the email with a known domain typo fixed, or None."""
    local, at, domain = email.rpartition("@")
    if at and domain in _TYPO_DOMAINS:
        return f"{local}@{_TYPO_DOMAINS[domain]}"
    for correct, typos in EMAIL_TYPO_CORRECTIONS.items():
        for typo in typos:
            if typo in email and correct not in email:
                return email.replace(typo, correct)
    return None


def validate_email(email: Any) -> EmailValidation:
    if not email or not isinstance(email, str):
        return EmailValidation(is_valid=False, error="Email is required")

    cleaned = email.strip().lower()
    corrected = attempt_email_correction(cleaned)
    if EMAIL_PATTERN.match(cleaned) and corrected is None:
        return EmailValidation(is_valid=True, corrected=cleaned)
    if corrected and not EMAIL_PATTERN.match(corrected):
        corrected = None
    return EmailValidation(
        is_valid=False,
        corrected=corrected,
        error="Invalid email format",
        original=email,
    )


def find_similar_country(value: str) -> Optional[str]:
    needle = value.lower()
    for country in VALID_COUNTRIES:
        candidate = country.lower()
        if needle in candidate or candidate in needle:
            return country
    return None


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def validate_streamer(data: Dict[str, Any]) -> ValidationResult:
    """
    Validates a streamer record.

    Errors make the record invalid. Warnings describe corrections that were
    applied to `corrected_data`. The input dict is left untouched.

    Args:
        data: The raw streamer fields (snake_case keys).

    Returns:
        ValidationResult with the corrected copy of the data.
    """
    errors: list[str] = []
    warnings: list[str] = []
    corrected = dict(data)

    streamer_id = data.get("id")
    if streamer_id is None or str(streamer_id).strip() == "":
        errors.append("Streamer id is required")
    else:
        corrected["id"] = str(streamer_id).strip()

    name = data.get("name")
    if not name or not isinstance(name, str):
        errors.append("Name is required")
    else:
        corrected["name"] = name.strip()
        if len(corrected["name"]) < MIN_NAME_LENGTH:
            errors.append(f"Name must have at least {MIN_NAME_LENGTH} characters")

    email = validate_email(data.get("email"))
    if email.is_valid:
        corrected["email"] = email.corrected
    elif email.corrected:
        corrected["email"] = email.corrected
        warnings.append(f"Email corrected: {data.get('email')} -> {email.corrected}")
    else:
        errors.append(email.error)

    country = data.get("country")
    if not country or not str(country).strip():
        corrected["country"] = DEFAULT_COUNTRY
        warnings.append(f"Country not specified, defaulting to {DEFAULT_COUNTRY}")
    else:
        country = str(country).strip()
        if country in VALID_COUNTRIES:
            corrected["country"] = country
        else:
            similar = find_similar_country(country)
            if similar:
                corrected["country"] = similar
                warnings.append(f"Country corrected: {country} -> {similar}")
            else:
                errors.append(
                    f"Invalid country: {country}. "
                    f"Valid countries: {', '.join(VALID_COUNTRIES)}"
                )

    level = _as_number(data.get("level"))
    if level is None or not min(VALID_LEVELS) <= level <= max(VALID_LEVELS):
        corrected["level"] = DEFAULT_LEVEL
        warnings.append(f"Invalid level, defaulting to level {DEFAULT_LEVEL}")
    else:
        corrected["level"] = int(level)
        if level != int(level):
            warnings.append(f"Level {data.get('level')} rounded down to {int(level)}")

    earnings = _as_number(data.get("earnings"))
    if earnings is None or earnings <= 0:
        errors.append("Earnings must be a positive number")
    else:
        corrected["earnings"] = earnings

    phone = data.get("phone")
    if phone:
        cleaned_phone = re.sub(r"\s", "", str(phone))
        if PHONE_PATTERN.match(cleaned_phone):
            corrected["phone"] = cleaned_phone
        else:
            warnings.append("Invalid phone format (phone is optional)")

    binance_email = data.get("binance_email")
    if binance_email:
        binance = validate_email(binance_email)
        if binance.is_valid:
            corrected["binance_email"] = binance.corrected
        elif binance.corrected:
            corrected["binance_email"] = binance.corrected
            warnings.append(
                f"Binance email corrected: {binance_email} -> {binance.corrected}"
            )
        else:
            corrected["binance_email"] = None
            warnings.append("Invalid Binance email (field is optional)")

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        corrected_data=corrected,
    )


def validate_many(items: Iterable[Dict[str, Any]]) -> BatchValidationReport:
    results = []
    total_errors = 0
    total_warnings = 0
    total_corrections = 0

    for item in items:
        validation = validate_streamer(item)
        result = asdict(validation)
        result["streamer_id"] = item.get("id")
        result["has_corrections"] = validation.has_corrections
        results.append(result)

        total_errors += len(validation.errors)
        total_warnings += len(validation.warnings)
        if validation.has_corrections:
            total_corrections += 1

    successful = sum(1 for r in results if r["is_valid"])
    return BatchValidationReport(
        total=len(results),
        successful=successful,
        failed=len(results) - successful,
        total_errors=total_errors,
        total_warnings=total_warnings,
        total_corrections=total_corrections,
        results=results,
    )


def generate_report(batch: BatchValidationReport) -> Dict[str, Any]:
    success_rate = (batch.successful / batch.total * 100) if batch.total else 0.0
    return {
        "summary": {
            "total": batch.total,
            "successful": batch.successful,
            "failed": batch.failed,
            "success_rate": f"{success_rate:.1f}%",
        },
        "issues": {
            "errors": batch.total_errors,
            "warnings": batch.total_warnings,
            "corrections": batch.total_corrections,
        },
        "details": batch.results,
    }
