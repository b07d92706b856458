"""
Agency backend package.

A FastAPI service that proxies the Google Apps Script deployment, stores
streamers and commissions in Firestore and keeps both in sync.
"""
