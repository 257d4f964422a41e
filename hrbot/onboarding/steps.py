"""
Onboarding step controllers.

Every step implements the same contract so the wizard can drive it without
knowing which form it is:

    load()      fetch what the server already has
    submit()    validate, PATCH once, advance the stored progress -> bool
    save()      PATCH the draft without validating or advancing -> bool
    is_dirty    draft differs from the last loaded/saved baseline
    is_submitting

Validation and network failures never raise; they are reported through
``errors`` (per field) and ``notice`` (one transient message) and the
method returns False.
"""
import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type

from hrbot.config import settings
from hrbot.onboarding.schemas import (
    AGREEMENT_DOCUMENT,
    DOCUMENT_TYPES,
    Agreement,
    BankDetails,
    Documents,
    PersonalDetails,
    StepSchema,
    validate_step,
)
from hrbot.services.hr_api import HrApi
from hrbot.services.session import SessionContext
from hrbot.services.store import KeyValueStore, read_active_step, write_active_step
from hrbot.services.uploads import PDF, UploadError, upload_document
from hrbot.logger import get_logger

logger = get_logger(__name__)

STEP_COUNT = 4


@dataclass
class StepContext:
    """Collaborators a step needs to load and submit its data."""
    api: HrApi
    store: KeyValueStore
    session: SessionContext
    step_count: int = STEP_COUNT

    @property
    def user_id(self):
        return self.session.user_id


class StepController(ABC):
    """Base class for one wizard page."""

    name: str = ""
    title: str = ""
    schema: Type[StepSchema] = StepSchema

    def __init__(self, context: StepContext, index: int):
        self.context = context
        self.index = index
        self.values: Dict[str, Any] = self.initial_values()
        self._baseline: Dict[str, Any] = copy.deepcopy(self.values)
        self.errors: Dict[str, str] = {}
        self.notice: Optional[str] = None
        self.loaded = False
        self._busy = False

    # --- State ---

    def initial_values(self) -> Dict[str, Any]:
        return {field: "" for field, _ in self.fields()}

    @classmethod
    def fields(cls) -> List[Tuple[str, str]]:
        """(api field, label) pairs the user can edit, in display order."""
        return [(field, cls.schema.label(field)) for field in cls.schema.field_order()]

    @property
    def is_dirty(self) -> bool:
        return self.values != self._baseline

    @property
    def is_submitting(self) -> bool:
        return self._busy

    def set_value(self, field: str, value: Any) -> None:
        """Update one draft field and clear its stale error."""
        self.values[field] = value
        self.errors.pop(field, None)

    def _reset_baseline(self) -> None:
        self._baseline = copy.deepcopy(self.values)

    # --- Contract ---

    async def load(self) -> None:
        """Merge server-side data into the draft and make it the baseline."""
        data = await self._fetch()
        if isinstance(data, dict):
            self.values = self._merge(data)
        elif data is None and not self.loaded:
            logger.debug("No saved data for step", step=self.name)
        self._reset_baseline()
        self.loaded = True

    def validate(self) -> Optional[Dict[str, Any]]:
        """Run the declarative schema; fill errors; return the payload or None."""
        model, errors = validate_step(self.schema, self.values)
        self.errors = errors
        if model is None:
            return None
        return model.model_dump(by_alias=True, mode="json", exclude_none=True)

    async def submit(self) -> bool:
        """Validate, write once, and advance the stored progress on success."""
        self.notice = None
        if not self._ready_to_submit():
            return False

        payload = self.validate()
        if payload is None:
            self.notice = "Please correct the errors in the form."
            return False

        self._busy = True
        try:
            if not await self._write(payload):
                self.notice = f"Failed to submit {self.title.lower()}."
                return False

            await self._advance_progress()
            self._reset_baseline()
            self.notice = f"{self.title} submitted successfully!"
            logger.info("Step submitted", step=self.name, user_id=self.context.user_id)
            return True
        finally:
            self._busy = False

    async def save(self) -> bool:
        """Write the current draft without validating or advancing."""
        self.notice = None
        if not self.is_dirty:
            self.notice = "There are no changes to save."
            return True

        self._busy = True
        try:
            if not await self._write(self._draft_payload()):
                self.notice = "Failed to save details."
                return False
            self._reset_baseline()
            self.notice = "Details saved successfully!"
            logger.info("Step draft saved", step=self.name, user_id=self.context.user_id)
            return True
        finally:
            self._busy = False

    # --- Hooks ---

    @abstractmethod
    async def _fetch(self) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def _write(self, payload: Dict[str, Any]) -> bool:
        ...

    def _ready_to_submit(self) -> bool:
        return True

    def _merge(self, data: Dict[str, Any]) -> Dict[str, Any]:
        merged = self.initial_values()
        for field in merged:
            if data.get(field) is not None:
                merged[field] = data[field]
        return merged

    def _draft_payload(self) -> Dict[str, Any]:
        return {k: v for k, v in self.values.items() if v not in (None, "")}

    async def _advance_progress(self) -> None:
        """Move the stored resume index past this step, never backwards."""
        target = self.index + 1
        if target > self.context.step_count - 1:
            return
        stored = await read_active_step(self.context.store) or 0
        if stored < target:
            await write_active_step(self.context.store, target)


class PersonalStep(StepController):
    name = "personal"
    title = "Personal Details"
    schema = PersonalDetails

    async def _fetch(self):
        return await self.context.api.get_personal_details(self.context.user_id)

    async def _write(self, payload):
        return await self.context.api.submit_personal_details(self.context.user_id, payload)


class _UploadingStep(StepController):
    """Step that owns uploaded files."""

    def __init__(self, context: StepContext, index: int):
        super().__init__(context, index)
        self._uploads = 0

    @property
    def is_submitting(self) -> bool:
        return self._busy or self._uploads > 0

    def _ready_to_submit(self) -> bool:
        if self._uploads:
            self.notice = "Please wait for all documents to finish uploading."
            return False
        return True

    async def _upload(self, document_type: str, file_name: str, content: bytes,
                      content_type: str) -> Optional[Dict[str, str]]:
        self._uploads += 1
        try:
            return await upload_document(
                self.context.api,
                self.context.user_id,
                document_type,
                file_name,
                content,
                content_type=content_type,
                max_bytes=settings.MAX_UPLOAD_BYTES,
                allowed_types=list(DOCUMENT_TYPES) + [AGREEMENT_DOCUMENT],
            )
        except UploadError as e:
            logger.warning("Upload rejected", document_type=document_type, error=str(e))
            self.notice = str(e)
            return None
        finally:
            self._uploads -= 1


class DocumentsStep(_UploadingStep):
    name = "documents"
    title = "Documents"
    schema = Documents

    def initial_values(self) -> Dict[str, Any]:
        return {}

    def _merge(self, data):
        return {
            field: {"name": entry.get("name") or "", "url": entry.get("url")}
            for field, entry in data.items()
            if field in DOCUMENT_TYPES and isinstance(entry, dict) and entry.get("url")
        }

    def _draft_payload(self):
        return copy.deepcopy(self.values)

    async def attach(self, document_type: str, file_name: str, content: bytes,
                     content_type: str = PDF) -> bool:
        """Upload one document and record its reference in the draft."""
        self.notice = None
        ref = await self._upload(document_type, file_name, content, content_type)
        if ref is None:
            return False
        self.set_value(document_type, ref)
        self.notice = f"{file_name} uploaded successfully!"
        return True

    async def detach(self, document_type: str) -> bool:
        """Delete a document on the server and drop it from the draft."""
        if not await self.context.api.delete_document(self.context.user_id, document_type):
            self.notice = "Failed to delete document."
            return False
        self.values.pop(document_type, None)
        self._baseline.pop(document_type, None)
        self.notice = "Document deleted successfully."
        return True

    async def _fetch(self):
        return await self.context.api.get_documents(self.context.user_id)

    async def _write(self, payload):
        return await self.context.api.submit_documents(self.context.user_id, payload)


class BankStep(StepController):
    name = "bank"
    title = "Bank Details"
    schema = BankDetails

    async def _fetch(self):
        return await self.context.api.get_bank_details(self.context.user_id)

    async def _write(self, payload):
        return await self.context.api.submit_bank_details(self.context.user_id, payload)


class AgreementStep(_UploadingStep):
    name = "agreement"
    title = "Agreement"
    schema = Agreement

    def initial_values(self) -> Dict[str, Any]:
        return {"accepted": False, "document": None}

    @classmethod
    def fields(cls):
        return [("accepted", "I accept the agreement")]

    def _merge(self, data):
        merged = self.initial_values()
        merged["accepted"] = bool(data.get("accepted", False))
        document = data.get("agreement") or data.get("document")
        if isinstance(document, dict) and document.get("url"):
            merged["document"] = {
                "name": document.get("name") or "Signed Agreement",
                "url": document["url"],
            }
        return merged

    def _draft_payload(self):
        return copy.deepcopy(self.values)

    def accept(self, accepted: bool = True) -> None:
        self.set_value("accepted", accepted)

    async def attach(self, file_name: str, content: bytes, content_type: str = PDF) -> bool:
        """Upload the signed agreement."""
        self.notice = None
        ref = await self._upload(AGREEMENT_DOCUMENT, file_name, content, content_type)
        if ref is None:
            return False
        self.set_value("document", ref)
        self.notice = f"{file_name} uploaded successfully!"
        return True

    async def _fetch(self):
        return await self.context.api.get_agreement(self.context.user_id)

    async def _write(self, payload):
        return await self.context.api.submit_agreement(self.context.user_id, payload)
