"""
Credential providers producing bearer tokens for the AdMob API.

Two flows are supported: the interactive gcloud CLI login used on developer
machines, and a service account key exchanged through google-auth.
"""

import json
import logging
import subprocess
from typing import Dict, Optional, Sequence

import google.auth.exceptions
import google.auth.transport.requests
import google.oauth2.service_account

from config import ADMOB_READONLY_SCOPE, DashboardConfig
from error_handling import CredentialError

logger = logging.getLogger(__name__)


class GcloudCredentialProvider:
    """Obtains tokens and drives the login flow through the gcloud CLI."""

    def __init__(self, gcloud_bin: str = "gcloud", timeout: int = 60):
        self.gcloud_bin = gcloud_bin
        self.timeout = timeout

    def _run(self, args: Sequence[str], stdin: Optional[str] = None) -> str:
        command = [self.gcloud_bin, *args]
        logger.debug("Running %s", " ".join(command[:3]))
        try:
            completed = subprocess.run(
                command,
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except FileNotFoundError as exc:
            raise CredentialError(f"gcloud CLI not found: {self.gcloud_bin}") from exc
        except subprocess.TimeoutExpired as exc:
            raise CredentialError(f"gcloud {args[0]} timed out after {self.timeout}s") from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            logger.error("gcloud %s failed: %s", " ".join(args[:2]), stderr)
            raise CredentialError(stderr or f"gcloud {' '.join(args[:2])} failed") from exc
        return completed.stdout.strip()

    def get_access_token(self) -> str:
        token = self._run(["auth", "application-default", "print-access-token"])
        if not token:
            raise CredentialError("Failed to get access token")
        return token

    def start_login(self) -> str:
        """Start the browserless login and return the URL the user must visit."""
        return self._run(["auth", "login", "--no-launch-browser", "--format=value(url)"])

    def complete_login(self, code: str) -> str:
        """Finish the login with the verification code and set up application default credentials."""
        details = self._run(["auth", "login", "--no-launch-browser", "--cred-file=-"], stdin=f"{code}\n")
        self._run(["auth", "application-default", "login", "--no-launch-browser"])
        return details

    def auth_status(self) -> Dict[str, Optional[str]]:
        account = self._run(["auth", "list", "--filter=status:ACTIVE", "--format=value(account)"])
        return {"is_authenticated": bool(account), "account": account or None}


class ServiceAccountCredentialProvider:
    """Exchanges a service account key for an AdMob read-only access token."""

    def __init__(self, key_file: Optional[str] = None, key_json: Optional[str] = None,
                 scopes: Sequence[str] = (ADMOB_READONLY_SCOPE,)):
        if not key_file and not key_json:
            raise CredentialError("Service account requires a key file or key JSON")
        self.key_file = key_file
        self.key_json = key_json
        self.scopes = list(scopes)
        self._credentials = None

    def _load_credentials(self):
        if self.key_json:
            try:
                key_data = json.loads(self.key_json)
            except json.JSONDecodeError as exc:
                raise CredentialError(f"Invalid service account JSON: {exc}") from exc
            logger.info("Using service account credentials from JSON string")
            return google.oauth2.service_account.Credentials.from_service_account_info(
                key_data, scopes=self.scopes
            )
        logger.info(f"Using service account credentials from file: {self.key_file}")
        return google.oauth2.service_account.Credentials.from_service_account_file(
            self.key_file, scopes=self.scopes
        )

    def get_access_token(self) -> str:
        try:
            if self._credentials is None:
                self._credentials = self._load_credentials()
            if not self._credentials.valid:
                self._credentials.refresh(google.auth.transport.requests.Request())
        except CredentialError:
            raise
        except (OSError, ValueError, google.auth.exceptions.GoogleAuthError) as exc:
            logger.error("Error getting access token: %s", exc)
            raise CredentialError("Failed to get access token") from exc
        return self._credentials.token

    def auth_status(self) -> Dict[str, Optional[str]]:
        try:
            self.get_access_token()
        except CredentialError as exc:
            return {"is_authenticated": False, "account": None, "error": str(exc)}
        return {
            "is_authenticated": True,
            "account": getattr(self._credentials, "service_account_email", None),
        }


def get_credential_provider(config: DashboardConfig):
    """Service account when a key is configured, gcloud CLI otherwise."""
    if config.uses_service_account:
        return ServiceAccountCredentialProvider(
            key_file=config.service_account_file,
            key_json=config.service_account_json,
        )
    return GcloudCredentialProvider()
