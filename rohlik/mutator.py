"""
Dual-path mutations: structured API call first, HTML form submission second.

Each mutation runs through a small state machine:

    NOT_STARTED -> API_ATTEMPTED -> SUCCESS
                                 -> FORM_ATTEMPTED -> SUCCESS | FAILED

Intents without an API path start at FORM_ATTEMPTED. Both paths record a
MutationAttempt; the caller gets one MutationOutcome either way. The only
exceptions raised here are FormDiscoveryError / CsrfTokenMissing, when the
form path cannot even be assembled.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from .crawlers.transport import RateLimitedTransport
from .errors import TransportError
from .extraction.engine import ExtractionEngine

logger = logging.getLogger(__name__)

API_PATH = 'api'
FORM_PATH = 'form'


class MutationState(Enum):
    NOT_STARTED = "not_started"
    API_ATTEMPTED = "api_attempted"
    FORM_ATTEMPTED = "form_attempted"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class MutationIntent:
    """
    Everything needed to perform one state-changing operation on either path.

    Attributes:
        name: Human-readable operation name (logs, outcomes)
        reference_path: Page that carries the fallback form
        form_intent: Key into FORM_INTENTS
        api_path: Structured endpoint; None skips the API path
        api_payload: JSON body for the API path
        form_params: Values for placeholders in the form selectors
        form_values: Values overlaid onto the discovered form fields
    """
    name: str
    reference_path: str
    form_intent: str
    api_path: Optional[str] = None
    api_payload: Dict[str, Any] = field(default_factory=dict)
    form_params: Dict[str, Any] = field(default_factory=dict)
    form_values: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MutationAttempt:
    """What one path tried and how it ended."""
    path: str
    detail: str
    status: Optional[int] = None
    succeeded: bool = False


@dataclass(frozen=True)
class MutationOutcome:
    intent: str
    state: MutationState
    attempts: Tuple[MutationAttempt, ...] = ()
    succeeded_via: Optional[str] = None
    data: Any = None

    @property
    def success(self) -> bool:
        return self.state is MutationState.SUCCESS

    def describe(self) -> str:
        """One line per attempt, for error messages."""
        return "; ".join(f"{a.path}: {a.detail}" for a in self.attempts) or "no attempts"


class DualPathMutator:
    """
    Runs MutationIntents through the API-then-form state machine.

    Usage:
        mutator = DualPathMutator(transport, engine)
        outcome = await mutator.execute(MutationIntent(
            name='add to cart',
            api_path='/api/cart/add',
            api_payload={'productId': '1440986', 'quantity': 2},
            reference_path='/1440986-',
            form_intent='add_to_cart',
            form_values={'product_id': '1440986', 'quantity': 2},
        ))
        if not outcome.success:
            ...
    """

    def __init__(self, transport: RateLimitedTransport, engine: ExtractionEngine):
        self.transport = transport
        self.engine = engine

    async def execute(self, intent: MutationIntent) -> MutationOutcome:
        """
        Perform the mutation.

        Returns:
            MutationOutcome in state SUCCESS or FAILED

        Raises:
            FormDiscoveryError: The fallback form could not be located
            CsrfTokenMissing: The fallback page has no anti-forgery token
        """
        state = MutationState.NOT_STARTED
        attempts: List[MutationAttempt] = []

        if intent.api_path:
            state = MutationState.API_ATTEMPTED
            attempt, data = await self._attempt_api(intent)
            attempts.append(attempt)
            if attempt.succeeded:
                logger.info(f"{intent.name}: succeeded via API")
                return MutationOutcome(
                    intent=intent.name,
                    state=MutationState.SUCCESS,
                    attempts=tuple(attempts),
                    succeeded_via=API_PATH,
                    data=data,
                )
            logger.warning(f"{intent.name}: API path failed ({attempt.detail}), trying form submission")

        state = MutationState.FORM_ATTEMPTED
        attempt, data = await self._attempt_form(intent)
        attempts.append(attempt)

        if attempt.succeeded:
            logger.info(f"{intent.name}: succeeded via form submission")
            return MutationOutcome(
                intent=intent.name,
                state=MutationState.SUCCESS,
                attempts=tuple(attempts),
                succeeded_via=FORM_PATH,
                data=data,
            )

        logger.error(f"{intent.name}: failed after {state.value} ({attempt.detail})")
        return MutationOutcome(
            intent=intent.name,
            state=MutationState.FAILED,
            attempts=tuple(attempts),
        )

    async def _attempt_api(self, intent: MutationIntent) -> Tuple[MutationAttempt, Any]:
        """POST the JSON payload; success needs a 2xx JSON body with success == true."""
        try:
            response = await self.transport.post_json(intent.api_path, intent.api_payload)
        except TransportError as e:
            return MutationAttempt(API_PATH, str(e), getattr(e, 'status', None)), None

        try:
            body = response.json()
        except ValueError:
            return MutationAttempt(API_PATH, "Response is not JSON", response.status_code), None

        if not isinstance(body, dict) or body.get('success') is not True:
            message = body.get('message') if isinstance(body, dict) else None
            detail = f"No success indicator{f': {message}' if message else ''}"
            return MutationAttempt(API_PATH, detail, response.status_code), None

        return MutationAttempt(API_PATH, "ok", response.status_code, succeeded=True), body

    async def _attempt_form(self, intent: MutationIntent) -> Tuple[MutationAttempt, Any]:
        """Fetch the reference page, discover the form, overlay values and submit it."""
        try:
            page = await self.transport.get(intent.reference_path)
        except TransportError as e:
            detail = f"Reference page {intent.reference_path} unavailable: {e}"
            return MutationAttempt(FORM_PATH, detail, getattr(e, 'status', None)), None

        # Raises FormDiscoveryError / CsrfTokenMissing
        form = self.engine.discover_form(
            page.text,
            intent.form_intent,
            params=intent.form_params,
            page_url=str(page.url),
        )
        fields = form.compose(intent.form_values)
        logger.debug(f"{intent.name}: submitting {form.method.upper()} {form.action} with fields {sorted(fields)}")

        try:
            if form.method == 'get':
                separator = '&' if '?' in form.action else '?'
                response = await self.transport.get(f"{form.action}{separator}{urlencode(fields)}")
            else:
                response = await self.transport.post_form(form.action, fields)
        except TransportError as e:
            return MutationAttempt(FORM_PATH, str(e), getattr(e, 'status', None)), None

        return MutationAttempt(FORM_PATH, "ok", response.status_code, succeeded=True), response
