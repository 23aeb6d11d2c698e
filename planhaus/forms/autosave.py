"""
Autosave form controller.

Wraps a set of form values validated by a pydantic model and persists them
to the API without an explicit save action:

    clean --edit--> dirty --debounce/blur/manual--> saving --ok--> saved
                                                       \\--fail--> error

Only one save is in flight per form. Edits that land while a save is in
flight queue exactly one follow-up save, fired as soon as the in-flight
request settles. Invalid values never reach the network.
"""
import asyncio
import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from planhaus.cache import QueryCache
from planhaus.utils.config import Config
from planhaus.utils.logger import get_logger

from .notifications import Notifier

logger = get_logger(__name__)

UNSAVED_CHANGES_WARNING = 'You have unsaved changes. Are you sure you want to leave?'


class SaveState(str, Enum):
    CLEAN = 'clean'
    DIRTY = 'dirty'
    SAVING = 'saving'
    SAVED = 'saved'
    ERROR = 'error'


class AutosaveConfigError(Exception):
    """The controller has no endpoint it can save to."""


@dataclass
class AutosaveOptions:
    enabled: bool = True
    debounce_ms: int = Config.AUTOSAVE_DEBOUNCE_MS
    save_on_blur: bool = True

    # POST target for new records, PATCH target (with ":id") for existing ones
    save_endpoint: Optional[str] = None
    update_endpoint: Optional[str] = None
    # Cache entries to invalidate after a successful save
    query_keys: List[tuple] = field(default_factory=list)

    # Automatic re-attempts after retryable failures (network, 5xx)
    max_retries: int = Config.AUTOSAVE_MAX_RETRIES

    id_field: str = 'id'
    get_id: Optional[Callable[[Dict[str, Any]], Any]] = None
    transform_before_save: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None

    on_save_start: Optional[Callable[[Dict[str, Any]], None]] = None
    on_save_success: Optional[Callable[[Dict[str, Any], Any], None]] = None
    on_save_error: Optional[Callable[[Dict[str, Any], Exception], None]] = None


class AutosaveController:
    """Debounced, single-flight persistence for one form instance."""

    def __init__(
        self,
        schema: Type[BaseModel],
        client,
        cache: Optional[QueryCache] = None,
        options: Optional[AutosaveOptions] = None,
        notifier: Optional[Notifier] = None,
        initial: Optional[Dict[str, Any]] = None,
    ):
        self.schema = schema
        self.client = client
        self.cache = cache
        self.options = options or AutosaveOptions()
        self.notifier = notifier or Notifier()

        self.values: Dict[str, Any] = dict(initial or {})
        self._saved_values: Dict[str, Any] = copy.deepcopy(self.values)
        self.state = SaveState.CLEAN
        self.errors: Dict[str, str] = {}
        self.last_saved: Optional[datetime] = None
        self.last_error: Optional[Exception] = None

        self._timer: Optional[asyncio.TimerHandle] = None
        self._inflight: Optional[asyncio.Task] = None
        self._queued = False
        self._retries = 0
        self._generation = 0
        self._closed = False
        self._validate()

    # -- form state ----------------------------------------------------------

    @property
    def has_unsaved_changes(self) -> bool:
        return self.values != self._saved_values

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def is_saving(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def _validate(self) -> Optional[BaseModel]:
        try:
            model = self.schema.model_validate(self.values)
        except ValidationError as e:
            self.errors = {
                '.'.join(str(part) for part in err['loc']) or '__root__': err['msg']
                for err in e.errors()
            }
            return None
        self.errors = {}
        return model

    def edit(self, **changes):
        """Apply field changes and (re)arm the debounce timer when valid."""
        if self._closed:
            return
        self.values.update(changes)
        self._validate()
        self._retries = 0

        if not self.has_unsaved_changes:
            self._cancel_timer()
            if not self.is_saving:
                self.state = SaveState.CLEAN
            return

        if self.is_saving:
            if self.is_valid:
                self._queued = True
            return

        self.state = SaveState.DIRTY
        if self.options.enabled and self.is_valid:
            self._arm_timer()

    def reset(self, values: Optional[Dict[str, Any]] = None):
        """Load another record; responses for the previous one are ignored."""
        self._cancel_timer()
        self._generation += 1
        self._queued = False
        self._inflight = None
        self._retries = 0
        self.values = dict(values or {})
        self._saved_values = copy.deepcopy(self.values)
        self.state = SaveState.CLEAN
        self.last_error = None
        self._validate()

    # -- triggers ------------------------------------------------------------

    def _arm_timer(self):
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.options.debounce_ms / 1000, self._on_debounce)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_debounce(self):
        self._timer = None
        if self.options.enabled:
            self._start_save()

    def blur(self) -> Optional[asyncio.Task]:
        if not (self.options.enabled and self.options.save_on_blur):
            return None
        self._cancel_timer()
        return self._start_save()

    async def save_manually(self) -> bool:
        """Save now, even with autosave disabled; True when everything is saved."""
        self._cancel_timer()
        self._start_save()
        await self.flush()
        return self.state in (SaveState.SAVED, SaveState.CLEAN) and not self.has_unsaved_changes

    async def flush(self):
        """Wait until no save (including a queued follow-up) is in flight."""
        while self._inflight is not None and not self._inflight.done():
            await asyncio.shield(self._inflight)

    def before_unload(self) -> Optional[str]:
        """Warning to show before leaving the page, if anything is unsaved."""
        if self.has_unsaved_changes:
            return UNSAVED_CHANGES_WARNING
        return None

    def _start_save(self) -> Optional[asyncio.Task]:
        if self._closed:
            return None
        if self.is_saving:
            self._queued = True
            return self._inflight
        if not self.has_unsaved_changes or self._validate() is None:
            return None
        snapshot = copy.deepcopy(self.values)
        self.state = SaveState.SAVING
        self._inflight = asyncio.ensure_future(self._save(snapshot, self._generation))
        return self._inflight

    # -- saving --------------------------------------------------------------

    def _record_id(self, values: Dict[str, Any]) -> Any:
        if self.options.get_id is not None:
            return self.options.get_id(values)
        return values.get(self.options.id_field)

    async def _send(self, values: Dict[str, Any]) -> Any:
        model = self.schema.model_validate(values)
        payload = model.model_dump(mode='json', exclude_none=True)
        if self.options.transform_before_save is not None:
            payload = self.options.transform_before_save(payload) or payload

        record_id = self._record_id(values)
        if record_id not in (None, '') and self.options.update_endpoint:
            path = self.options.update_endpoint.replace(':id', str(record_id))
            return await self.client.arequest('PATCH', path, json=payload)
        if self.options.save_endpoint:
            return await self.client.arequest('POST', self.options.save_endpoint, json=payload)
        raise AutosaveConfigError('No save endpoint configured')

    async def _save(self, snapshot: Dict[str, Any], generation: int):
        if self.options.on_save_start is not None:
            self.options.on_save_start(snapshot)
        try:
            response = await self._send(snapshot)
        except Exception as e:
            if generation == self._generation:
                self._on_failure(snapshot, e)
        else:
            if generation == self._generation:
                self._on_success(snapshot, response)
            else:
                logger.debug("Ignoring save response for a form that has moved on")
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None
            if generation == self._generation:
                self._run_queued()

    def _on_success(self, snapshot: Dict[str, Any], response: Any):
        self._saved_values = snapshot
        id_field = self.options.id_field
        if isinstance(response, dict) and response.get('id') is not None and not snapshot.get(id_field):
            # Adopt the id of a newly created record so later saves PATCH it
            self.values[id_field] = response['id']
            self._saved_values = dict(snapshot, **{id_field: response['id']})

        self.last_saved = datetime.now()
        self.last_error = None
        self._retries = 0
        self.state = SaveState.DIRTY if self.has_unsaved_changes else SaveState.SAVED

        if self.cache is not None:
            for key in self.options.query_keys:
                self.cache.invalidate(prefix=key)

        self.notifier.success('Saved', 'Your changes have been saved automatically',
                              duration=Config.SUCCESS_TOAST_SECONDS)
        if self.options.on_save_success is not None:
            self.options.on_save_success(snapshot, response)

    def _on_failure(self, snapshot: Dict[str, Any], error: Exception):
        logger.error(f"Autosave failed: {error}")
        self.state = SaveState.ERROR
        self.last_error = error
        self.notifier.error('Save Failed', 'Unable to save changes. Please try again.')
        if self.options.on_save_error is not None:
            self.options.on_save_error(snapshot, error)

        retryable = getattr(error, 'retryable', False)
        if retryable and not self._queued and self._retries < self.options.max_retries and self.options.enabled:
            self._retries += 1
            logger.info(f"Retrying save ({self._retries}/{self.options.max_retries})")
            self._arm_timer()

    def _run_queued(self):
        if not self._queued or self._closed:
            return
        self._queued = False
        if self.has_unsaved_changes and self._validate() is not None:
            self._cancel_timer()
            self._start_save()

    def close(self):
        """Cancel timers; a save still in flight finishes but is ignored."""
        self._cancel_timer()
        self._closed = True
        self._generation += 1
        self._queued = False
