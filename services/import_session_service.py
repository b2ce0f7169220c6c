"""
Import wizard sessions.

A session walks one uploaded file through

    upload -> mapping -> validation -> import -> complete

Sessions live in memory with TTL expiration (single process). Raw rows stay
server-side; the wizard only ever sees the summary from to_response().
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
import structlog

from config import settings
from models.imports import (
    AnalysisResult,
    ColumnMapping,
    DataType,
    ImportResult,
    ImportSessionResponse,
    ImportState,
    ValidationResult,
    get_target_fields,
)
from services.schema_mapper import analyze_file, build_initial_mapping, unmapped_required_fields
from services.import_validation_service import ImportValidationService, get_import_validation_service
from services.import_service import ImportService, get_import_service
from services.error_report_service import build_error_report, build_missing_fields_report
from exceptions import (
    ImportSessionNotFoundError,
    ImportStepError,
    StoreNotSelectedError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


@dataclass
class ImportSession:
    """Everything the wizard has accumulated for one upload."""
    id: str
    data_type: DataType
    state: ImportState = ImportState.UPLOAD
    filename: Optional[str] = None
    columns: list[str] = field(default_factory=list)
    raw_rows: list[dict[str, str]] = field(default_factory=list)
    sample_rows: list[dict[str, str]] = field(default_factory=list)
    suggestions: list[ColumnMapping] = field(default_factory=list)
    overrides: dict[str, Optional[str]] = field(default_factory=dict)
    selected_store: Optional[str] = None
    validation_result: Optional[ValidationResult] = None
    import_result: Optional[ImportResult] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def final_mapping(self) -> dict[str, Optional[str]]:
        """Suggested mapping with the user's explicit choices applied on top."""
        mapping = build_initial_mapping(self.suggestions)
        for column, target in self.overrides.items():
            if column in mapping:
                mapping[column] = target
        return mapping

    def clear_file(self) -> None:
        self.filename = None
        self.columns = []
        self.raw_rows = []
        self.sample_rows = []
        self.suggestions = []
        self.overrides = {}
        self.selected_store = None
        self.validation_result = None
        self.import_result = None


# ===================
# SESSION STORE
# ===================

_sessions: dict[str, tuple[datetime, ImportSession]] = {}


def store_session(session: ImportSession, ttl_minutes: Optional[int] = None) -> None:
    """Save a session, restarting its TTL."""
    if ttl_minutes is None:
        ttl_minutes = settings.session_ttl_minutes
    expires_at = datetime.now() + timedelta(minutes=ttl_minutes)
    _sessions[session.id] = (expires_at, session)
    _cleanup_expired()


def retrieve_session(session_id: str) -> Optional[ImportSession]:
    """Session by id. Returns None if expired/not found."""
    entry = _sessions.get(session_id)
    if entry is None:
        return None
    expires_at, session = entry
    if datetime.now() > expires_at:
        del _sessions[session_id]
        return None
    return session


def delete_session(session_id: str) -> None:
    _sessions.pop(session_id, None)


def _cleanup_expired() -> None:
    """Remove all expired entries."""
    now = datetime.now()
    expired = [k for k, (exp, _) in _sessions.items() if now > exp]
    for k in expired:
        del _sessions[k]


# ===================
# CONTROLLER
# ===================

class ImportSessionController:
    """
    Drives sessions through the wizard steps and enforces the guards
    between them.
    """

    def __init__(
        self,
        validation_service: Optional[ImportValidationService] = None,
        import_service: Optional[ImportService] = None,
    ):
        self._validation_service = validation_service
        self._import_service = import_service

    @property
    def validation_service(self) -> ImportValidationService:
        if self._validation_service is None:
            self._validation_service = get_import_validation_service()
        return self._validation_service

    @property
    def import_service(self) -> ImportService:
        if self._import_service is None:
            self._import_service = get_import_service()
        return self._import_service

    def get(self, session_id: str) -> ImportSession:
        """
        Raises:
            ImportSessionNotFoundError: If the session expired or never existed
        """
        session = retrieve_session(session_id)
        if session is None:
            raise ImportSessionNotFoundError(session_id)
        return session

    # ===================
    # UPLOAD -> MAPPING
    # ===================

    def create_session(
        self,
        content: bytes,
        filename: Optional[str],
        data_type: DataType,
        content_type: Optional[str] = None,
    ) -> ImportSession:
        """
        Analyze an upload and open a session at the mapping step.

        Raises:
            ImportParseError: If the file cannot be parsed (no session is kept)
        """
        session = ImportSession(id=str(uuid.uuid4()), data_type=DataType(data_type))
        self._load_file(session, content, filename, content_type)
        store_session(session)
        return session

    def upload(
        self,
        session_id: str,
        content: bytes,
        filename: Optional[str],
        data_type: Optional[DataType] = None,
        content_type: Optional[str] = None,
    ) -> ImportSession:
        """Load a new file into a session that is back at the upload step."""
        session = self.get(session_id)
        self._require_state(session, ImportState.MAPPING, ImportState.UPLOAD)
        if data_type is not None:
            session.data_type = DataType(data_type)
        self._load_file(session, content, filename, content_type)
        store_session(session)
        return session

    def _load_file(
        self,
        session: ImportSession,
        content: bytes,
        filename: Optional[str],
        content_type: Optional[str],
    ) -> None:
        analysis: AnalysisResult = analyze_file(content, filename, session.data_type, content_type)
        session.clear_file()
        session.filename = filename
        session.columns = analysis.columns
        session.raw_rows = analysis.raw_rows
        session.sample_rows = analysis.sample_rows
        session.suggestions = analysis.column_suggestions
        session.state = ImportState.MAPPING

        logger.info(
            "import_session_loaded",
            session_id=session.id,
            data_type=session.data_type.value,
            rows=len(session.raw_rows)
        )

    # ===================
    # MAPPING
    # ===================

    def set_mapping(self, session_id: str, mapping: dict[str, Optional[str]]) -> ImportSession:
        """
        Record explicit column choices. None means "do not import".

        Raises:
            ValidationError: Unknown column or target field
        """
        session = self.get(session_id)
        self._require_state(session, ImportState.MAPPING, ImportState.MAPPING)

        known_targets = {f.name for f in get_target_fields(session.data_type)}
        unknown_columns = [c for c in mapping if c not in session.columns]
        unknown_targets = [t for t in mapping.values() if t is not None and t not in known_targets]
        if unknown_columns or unknown_targets:
            raise ValidationError(
                message="Mapping refers to unknown columns or fields",
                code="IMPORT_INVALID_MAPPING",
                details={"columns": unknown_columns, "fields": unknown_targets}
            )

        session.overrides.update(mapping)
        store_session(session)

        logger.info("import_mapping_updated", session_id=session.id, overrides=len(session.overrides))
        return session

    # ===================
    # MAPPING -> VALIDATION
    # ===================

    def validate(self, session_id: str) -> ImportSession:
        """
        Validate every row with the final mapping.

        Raises:
            ImportStepError: If a required field is still unmapped
        """
        session = self.get(session_id)
        self._require_state(session, ImportState.VALIDATION, ImportState.MAPPING, ImportState.VALIDATION)

        mapping = session.final_mapping
        missing = unmapped_required_fields(mapping, session.data_type)
        if missing:
            raise ImportStepError(
                session.state.value,
                ImportState.VALIDATION.value,
                f"required fields not mapped: {', '.join(missing)}"
            )

        session.validation_result = self.validation_service.validate(
            session.raw_rows, mapping, session.data_type
        )
        session.state = ImportState.VALIDATION
        store_session(session)
        return session

    # ===================
    # VALIDATION -> IMPORT
    # ===================

    def select_store(self, session_id: str, store_id: str) -> ImportSession:
        """Choose the destination store; moves a validated session to the import step."""
        session = self.get(session_id)
        self._require_state(session, ImportState.IMPORT, ImportState.VALIDATION, ImportState.IMPORT)
        if session.state == ImportState.VALIDATION:
            self._require_importable_rows(session)

        session.selected_store = store_id
        session.state = ImportState.IMPORT
        store_session(session)

        logger.info("import_store_selected", session_id=session.id, store_id=store_id)
        return session

    # ===================
    # IMPORT -> COMPLETE
    # ===================

    def run_import(self, session_id: str) -> ImportSession:
        """
        Upsert the validated rows into the selected store.

        Partial success still completes the session.

        Raises:
            ImportStepError: If validation produced no importable rows
            StoreNotSelectedError: If no destination store was chosen
        """
        session = self.get(session_id)
        self._require_state(session, ImportState.COMPLETE, ImportState.VALIDATION, ImportState.IMPORT)
        self._require_importable_rows(session)
        if not session.selected_store:
            raise StoreNotSelectedError()

        session.state = ImportState.IMPORT
        session.import_result = self.import_service.import_records(
            session.validation_result.mapped_data,
            session.selected_store,
            session.data_type,
        )
        session.state = ImportState.COMPLETE
        store_session(session)
        return session

    # ===================
    # NAVIGATION
    # ===================

    def back(self, session_id: str) -> ImportSession:
        """Go back one step, dropping what the current step produced."""
        session = self.get(session_id)

        if session.state == ImportState.MAPPING:
            session.clear_file()
            session.state = ImportState.UPLOAD
        elif session.state == ImportState.VALIDATION:
            session.validation_result = None
            session.state = ImportState.MAPPING
        elif session.state == ImportState.IMPORT:
            session.selected_store = None
            session.state = ImportState.VALIDATION
        else:
            raise ImportStepError(session.state.value, "previous step", "no previous step")

        store_session(session)
        logger.info("import_session_back", session_id=session.id, state=session.state.value)
        return session

    def reset(self, session_id: str) -> ImportSession:
        """Discard everything and return to the upload step."""
        session = self.get(session_id)
        session.clear_file()
        session.state = ImportState.UPLOAD
        store_session(session)
        logger.info("import_session_reset", session_id=session.id)
        return session

    # ===================
    # REPORTS
    # ===================

    def error_report(self, session_id: str) -> str:
        """CSV of the session's validation errors."""
        session = self.get(session_id)
        if session.validation_result is None:
            raise ImportStepError(session.state.value, "error report", "session has not been validated")
        return build_error_report(session.validation_result.errors)

    def missing_fields_report(self, session_id: str) -> str:
        """CSV of the empty mapped cells found by validation."""
        session = self.get(session_id)
        if session.validation_result is None:
            raise ImportStepError(session.state.value, "missing fields report", "session has not been validated")
        return build_missing_fields_report(session.validation_result.missing_fields)

    def to_response(self, session: ImportSession) -> ImportSessionResponse:
        mapping = session.final_mapping
        return ImportSessionResponse(
            id=session.id,
            state=session.state,
            data_type=session.data_type,
            columns=session.columns,
            total_rows=len(session.raw_rows),
            sample_rows=session.sample_rows,
            suggested_mappings=session.suggestions,
            final_mapping=mapping,
            unmapped_required_fields=unmapped_required_fields(mapping, session.data_type) if session.columns else [],
            selected_store=session.selected_store,
            validation_result=session.validation_result,
            import_result=session.import_result,
            created_at=session.created_at,
        )

    # ===================
    # GUARDS
    # ===================

    def _require_state(self, session: ImportSession, requested: ImportState, *allowed: ImportState) -> None:
        if session.state not in allowed:
            raise ImportStepError(
                session.state.value,
                requested.value,
                f"only allowed from {', '.join(s.value for s in allowed)}"
            )

    def _require_importable_rows(self, session: ImportSession) -> None:
        result = session.validation_result
        if result is None or not result.ready_to_import:
            raise ImportStepError(
                session.state.value,
                ImportState.IMPORT.value,
                "validation produced no importable rows"
            )


# Singleton instance
_import_session_controller: Optional[ImportSessionController] = None


def get_import_session_controller() -> ImportSessionController:
    """Get or create ImportSessionController instance."""
    global _import_session_controller
    if _import_session_controller is None:
        _import_session_controller = ImportSessionController()
    return _import_session_controller
