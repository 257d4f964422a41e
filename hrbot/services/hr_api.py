"""
Service layer over the HR REST API endpoints.
"""
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote, urlencode

from hrbot.services.api_client import ApiClient, SessionExpiredHook
from hrbot.logger import get_logger

logger = get_logger(__name__)

UserId = Union[int, str]


class Endpoints:
    """Endpoint paths, relative to API_BASE_URL."""
    LOGIN = "/auth/signin"
    SIGNUP = "/auth/signup"
    FORGOT_PASSWORD = "/auth/forget-password"
    RESET_PASSWORD = "/auth/reset-password"
    LOGOUT = "/auth/logout"
    CONTACTS = "/profile/contacts"
    POLICIES = "/profile/policy"
    UPLOAD_POLICY = "/profile/policy/upload"
    PROFILE = "/profile/"
    NOTIFICATION = "/notifications/user-anniversaries-birthdays"
    USER = "/user/"
    DOCUMENTS = "/documents/"
    ADMIN_EMPLOYEES = "/admin/employees"


def _succeeded(result: Any) -> bool:
    """Interpret a {success: bool} or {status: ...} response."""
    if not isinstance(result, dict):
        return False
    if "success" in result:
        return bool(result["success"])
    return str(result.get("status", "")).lower() in ("ok", "success", "true")


class HrApi:
    """Typed wrappers for every endpoint the bot consumes."""

    def __init__(
        self,
        client: ApiClient,
        token: Optional[str] = None,
        on_session_expired: Optional[SessionExpiredHook] = None,
    ):
        self.client = client
        self.token = token
        self.on_session_expired = on_session_expired

    def with_token(self, token: Optional[str]) -> "HrApi":
        """Same client and hook, different credential."""
        return HrApi(self.client, token=token, on_session_expired=self.on_session_expired)

    async def _call(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        authenticated: bool = True,
    ) -> Any:
        return await self.client.request(
            endpoint,
            method=method,
            body=body,
            token=self.token if authenticated else None,
            on_session_expired=self.on_session_expired,
        )

    # --- Auth ---

    async def login(self, email: str, password: str) -> Optional[str]:
        """Exchange credentials for an access token."""
        result = await self._call(
            Endpoints.LOGIN, "POST",
            {"email": email, "password": password},
            authenticated=False,
        )
        if isinstance(result, dict):
            return result.get("access_token")
        return None

    async def signup(self, email: str, password: str) -> Optional[str]:
        """Set the password of a pre-provisioned account."""
        result = await self._call(
            Endpoints.SIGNUP, "PATCH",
            {"email": email, "password": password},
            authenticated=False,
        )
        if isinstance(result, dict):
            return result.get("access_token")
        return None

    async def forgot_password(self, email: str) -> bool:
        result = await self._call(
            Endpoints.FORGOT_PASSWORD, "POST", {"email": email}, authenticated=False
        )
        return _succeeded(result)

    async def reset_password(self, reset_token: str, new_password: str) -> bool:
        result = await self._call(
            Endpoints.RESET_PASSWORD, "PATCH",
            {"token": reset_token, "newPassword": new_password},
            authenticated=False,
        )
        return _succeeded(result)

    async def logout(self) -> bool:
        result = await self._call(Endpoints.LOGOUT, "POST")
        return _succeeded(result)

    # --- Onboarding steps ---

    async def get_personal_details(self, user_id: UserId) -> Optional[Dict[str, Any]]:
        return await self._call(f"{Endpoints.USER}{user_id}/personal-details")

    async def submit_personal_details(self, user_id: UserId, payload: Dict[str, Any]) -> bool:
        result = await self._call(
            f"{Endpoints.USER}{user_id}/personal-details", "PATCH", payload
        )
        return _succeeded(result)

    async def get_documents(self, user_id: UserId) -> Optional[Dict[str, Any]]:
        return await self._call(f"{Endpoints.DOCUMENTS}{user_id}")

    async def submit_documents(self, user_id: UserId, payload: Dict[str, Any]) -> bool:
        result = await self._call(f"{Endpoints.DOCUMENTS}{user_id}", "PATCH", payload)
        return _succeeded(result)

    async def presign_upload(
        self,
        user_id: UserId,
        file_name: str,
        file_size: int,
        document_type: str,
    ) -> Optional[Dict[str, str]]:
        """Ask for a presigned PUT URL plus the URL the file will live at."""
        result = await self._call(
            f"{Endpoints.DOCUMENTS}{user_id}/upload", "POST",
            {
                "fileName": file_name,
                "fileSize": file_size,
                "userId": user_id,
                "documentType": document_type,
            },
        )
        if isinstance(result, dict) and result.get("preSignedUrl"):
            return result
        return None

    async def delete_document(self, user_id: UserId, document_type: str) -> bool:
        result = await self._call(
            f"{Endpoints.DOCUMENTS}{user_id}/{quote(document_type)}", "DELETE"
        )
        return _succeeded(result)

    async def get_bank_details(self, user_id: UserId) -> Optional[Dict[str, Any]]:
        return await self._call(f"{Endpoints.USER}{user_id}/bank-details")

    async def submit_bank_details(self, user_id: UserId, payload: Dict[str, Any]) -> bool:
        result = await self._call(f"{Endpoints.USER}{user_id}/bank-details", "PATCH", payload)
        return _succeeded(result)

    async def get_agreement(self, user_id: UserId) -> Optional[Dict[str, Any]]:
        return await self._call(f"{Endpoints.USER}{user_id}/agreement")

    async def submit_agreement(self, user_id: UserId, payload: Dict[str, Any]) -> bool:
        result = await self._call(f"{Endpoints.USER}{user_id}/agreement", "PATCH", payload)
        return _succeeded(result)

    # --- Directory, policies, profile, notifications ---

    async def contacts(
        self,
        search: str = "",
        page: int = 1,
        limit: int = 10,
        sort_by: str = "user.firstName",
        sort_order: str = "ASC",
    ) -> List[Dict[str, Any]]:
        """Search the employee directory."""
        query = urlencode({
            "page": page,
            "limit": limit,
            "sortBy": sort_by,
            "sortOrder": sort_order,
            "search": search,
        })
        result = await self._call(f"{Endpoints.CONTACTS}?{query}")
        if isinstance(result, dict):
            return list(result.get("employeeProfiles") or [])
        return []

    async def policies(self) -> List[Dict[str, Any]]:
        result = await self._call(Endpoints.POLICIES)
        return result if isinstance(result, list) else []

    async def delete_policy(self, policy_id: UserId) -> bool:
        result = await self._call(f"{Endpoints.POLICIES}/{policy_id}", "DELETE")
        return _succeeded(result)

    async def presign_policy_upload(
        self,
        user_id: UserId,
        file_name: str,
        file_size: int,
    ) -> Optional[str]:
        """Ask for a presigned PUT URL for a new policy document."""
        result = await self._call(
            Endpoints.UPLOAD_POLICY, "POST",
            {"fileName": file_name, "fileSize": file_size, "userId": user_id},
        )
        if isinstance(result, dict) and result.get("signedUrl"):
            return result["signedUrl"]
        return None

    async def profile(self, user_id: UserId) -> Optional[Dict[str, Any]]:
        return await self._call(f"{Endpoints.PROFILE}{user_id}")

    async def celebrations(self) -> List[Dict[str, Any]]:
        """Birthday/anniversary groups: [{date, events: [...]}, ...]."""
        result = await self._call(Endpoints.NOTIFICATION)
        return result if isinstance(result, list) else []

    # --- Admin dashboard ---

    async def employees(
        self,
        search: str = "",
        page: int = 1,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        query = urlencode({"page": page, "limit": limit, "search": search})
        result = await self._call(f"{Endpoints.ADMIN_EMPLOYEES}?{query}")
        if isinstance(result, dict):
            return list(result.get("employees") or [])
        return result if isinstance(result, list) else []

    async def add_employee(self, payload: Dict[str, Any]) -> bool:
        result = await self._call(Endpoints.ADMIN_EMPLOYEES, "POST", payload)
        return _succeeded(result)

    async def update_employee(self, user_id: UserId, payload: Dict[str, Any]) -> bool:
        result = await self._call(f"{Endpoints.ADMIN_EMPLOYEES}/{user_id}", "PATCH", payload)
        return _succeeded(result)

    async def set_edit_rights(self, user_id: UserId, enabled: bool) -> bool:
        result = await self._call(
            f"{Endpoints.ADMIN_EMPLOYEES}/{user_id}/edit-rights", "PATCH",
            {"editRights": enabled},
        )
        return _succeeded(result)

    async def deactivate(self, user_id: UserId, reason: str) -> bool:
        result = await self._call(
            f"{Endpoints.ADMIN_EMPLOYEES}/{user_id}/deactivate", "PATCH",
            {"reason": reason},
        )
        return _succeeded(result)

    async def delete_permanently(self, user_id: UserId) -> bool:
        result = await self._call(f"{Endpoints.ADMIN_EMPLOYEES}/{user_id}", "DELETE")
        return _succeeded(result)

    async def send_reminder(self, user_id: UserId) -> bool:
        result = await self._call(
            f"{Endpoints.ADMIN_EMPLOYEES}/{user_id}/reminder", "POST"
        )
        return _succeeded(result)
