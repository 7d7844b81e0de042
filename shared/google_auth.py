"""Google API credentials and service builders for Sheets and Drive."""
import os
import pickle
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

# Scopes required for the tabular store and the project folders
SCOPES = [
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive',
]

# Token storage path (in project root)
TOKEN_PATH = Path(__file__).parent.parent / 'token.pickle'
CREDENTIALS_PATH = Path(__file__).parent.parent / 'credentials.json'


def get_credentials():
    """Get Google credentials for the server.

    A service account is used when GOOGLE_APPLICATION_CREDENTIALS points at a
    key file (the deployed case). Otherwise this falls back to OAuth 2.0 for
    personal use:
    - First time: Opens browser for authorization
    - Subsequent times: Uses saved token from token.pickle
    - Token auto-refreshes when expired

    Raises:
        ValueError: If neither a service account key nor credentials.json is found
    """
    key_file = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if key_file:
        return service_account.Credentials.from_service_account_file(key_file, scopes=SCOPES)

    creds = None

    if TOKEN_PATH.exists():
        with open(TOKEN_PATH, 'rb') as token:
            creds = pickle.load(token)

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            if not CREDENTIALS_PATH.exists():
                raise ValueError(
                    f"Google credentials not found!\n\n"
                    f"Either set GOOGLE_APPLICATION_CREDENTIALS to a service account key,\n"
                    f"or download an OAuth 2.0 Client ID (Desktop app) JSON from\n"
                    f"https://console.cloud.google.com/apis/credentials and save it as: {CREDENTIALS_PATH}"
                )

            flow = InstalledAppFlow.from_client_secrets_file(
                str(CREDENTIALS_PATH), SCOPES
            )
            creds = flow.run_local_server(port=0)

        with open(TOKEN_PATH, 'wb') as token:
            pickle.dump(creds, token)

    return creds


def get_sheets_api_resource():
    """Google Sheets API v4 resource."""
    return build('sheets', 'v4', credentials=get_credentials(), cache_discovery=False)


def get_drive_api_resource():
    """Google Drive API v3 resource."""
    return build('drive', 'v3', credentials=get_credentials(), cache_discovery=False)
