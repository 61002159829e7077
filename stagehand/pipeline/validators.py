"""
Stagehand - Validators and Their Registry
=========================================

What:  Two validator families and the registry the dispatcher reads them from.
       - ActionValidator: business/authorization checks. Run one after another
         in registration order; the first non-Continue outcome stops the chain.
       - SchemaValidator: field-level checks. Independent and side-effect free,
         so they run concurrently and their errors are merged.
How:   Validators are registered per concrete request type. Both are async.
       AuthorizationContext and NotFoundContext are scratch pads an action
       validator can use when it aggregates several checks into one outcome.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from stagehand.pipeline.requests import Request

RequestT = TypeVar("RequestT", bound=Request)
MetaT = TypeVar("MetaT")


# ══════════════════════════════════════════════════════════════════════════
# Outcomes
# ══════════════════════════════════════════════════════════════════════════

class ValidationStatus(IntEnum):
    """Action validator verdicts; every value except CONTINUE is an HTTP status."""

    CONTINUE = 100
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409


@dataclass(frozen=True)
class ValidationOutcome:
    status: ValidationStatus = ValidationStatus.CONTINUE
    message: Optional[str] = None

    @property
    def can_continue(self) -> bool:
        return self.status == ValidationStatus.CONTINUE

    @property
    def has_error(self) -> bool:
        return not self.can_continue

    @classmethod
    def success(cls) -> "ValidationOutcome":
        return cls(ValidationStatus.CONTINUE)

    @classmethod
    def bad_request(cls, message: Optional[str] = None) -> "ValidationOutcome":
        return cls(ValidationStatus.BAD_REQUEST, message)

    @classmethod
    def unauthorized(cls, message: Optional[str] = None) -> "ValidationOutcome":
        return cls(ValidationStatus.UNAUTHORIZED, message)

    @classmethod
    def forbidden(cls, message: Optional[str] = None) -> "ValidationOutcome":
        return cls(ValidationStatus.FORBIDDEN, message)

    @classmethod
    def not_found(cls, message: Optional[str] = None) -> "ValidationOutcome":
        return cls(ValidationStatus.NOT_FOUND, message)

    @classmethod
    def conflict(cls, message: Optional[str] = None) -> "ValidationOutcome":
        return cls(ValidationStatus.CONFLICT, message)


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


# ══════════════════════════════════════════════════════════════════════════
# Validator contracts
# ══════════════════════════════════════════════════════════════════════════

class ActionValidator(ABC, Generic[RequestT]):
    """
    Base class for business/authorization validators.

    Subclasses implement validate() and return one of the helper outcomes:

        class ItemOwnerValidator(ActionValidator[UpdateItem]):
            async def validate(self, request):
                if not await owns(request.id):
                    return self.forbidden("Only the owner may edit this item")
                return self.success()
    """

    @abstractmethod
    async def validate(self, request: RequestT) -> ValidationOutcome:
        ...

    def success(self) -> ValidationOutcome:
        return ValidationOutcome.success()

    def not_found(self, message: Optional[str] = None) -> ValidationOutcome:
        return ValidationOutcome.not_found(message)

    def unauthorized(self, message: Optional[str] = None) -> ValidationOutcome:
        return ValidationOutcome.unauthorized(message)

    def forbidden(self, message: Optional[str] = None) -> ValidationOutcome:
        return ValidationOutcome.forbidden(message)

    def bad_request(self, message: Optional[str] = None) -> ValidationOutcome:
        return ValidationOutcome.bad_request(message)

    def conflict(self, message: Optional[str] = None) -> ValidationOutcome:
        return ValidationOutcome.conflict(message)


class SchemaValidator(ABC, Generic[RequestT]):
    """Field-level validator; returns every problem it finds, or an empty list."""

    @abstractmethod
    async def validate(self, request: RequestT) -> List[FieldError]:
        ...


# ══════════════════════════════════════════════════════════════════════════
# Aggregation helpers
# ══════════════════════════════════════════════════════════════════════════

class AuthorizationContext:
    """
    Tallies the individual checks behind one authorization decision.

    The context counts as failed when any check failed or when no check
    succeeded at all, so an empty context never authorizes anything.
    """

    def __init__(self) -> None:
        self._fails = 0
        self._successes = 0
        self._errors: List[str] = []
        self._metadata: Dict[str, Any] = {}

    @property
    def errors(self) -> List[str]:
        return list(self._errors)

    @property
    def failure_count(self) -> int:
        return self._fails

    @property
    def success_count(self) -> int:
        return self._successes

    @property
    def metadata(self) -> Dict[str, Any]:
        return dict(self._metadata)

    def marked_as_failed(self) -> bool:
        return self._fails > 0 or self._successes == 0

    @property
    def is_successful(self) -> bool:
        return not self.marked_as_failed()

    def mark_as_succeeded(self, key: Optional[str] = None, value: Any = None) -> None:
        self._successes += 1
        if key is not None:
            self.add_metadata(key, value)

    def mark_as_failed(
        self, error: Optional[str] = None, key: Optional[str] = None, value: Any = None
    ) -> None:
        self._fails += 1
        if error:
            self._errors.append(error)
        if key is not None:
            self.add_metadata(key, value)

    def add_metadata(self, key: str, value: Any) -> None:
        self._metadata[key] = value

    def get_metadata(self, key: str, expected_type: Optional[Type[MetaT]] = None) -> Optional[MetaT]:
        """Metadata value for `key`, or None when absent or not an `expected_type`."""
        value = self._metadata.get(key)
        if expected_type is not None and not isinstance(value, expected_type):
            return None
        return value

    def reset(self) -> None:
        self._fails = 0
        self._successes = 0
        self._errors.clear()
        self._metadata.clear()


class NotFoundContext:
    """Collects "missing resource" findings across several lookups."""

    def __init__(self) -> None:
        self._not_found = False
        self._errors: List[str] = []
        self._metadata: Dict[str, Any] = {}

    @property
    def errors(self) -> List[str]:
        return list(self._errors)

    @property
    def metadata(self) -> Dict[str, Any]:
        return dict(self._metadata)

    def marked_as_not_found(self) -> bool:
        return self._not_found

    def mark_as_not_found(
        self, error: Optional[str] = None, key: Optional[str] = None, value: Any = None
    ) -> None:
        self._not_found = True
        if error:
            self._errors.append(error)
        if key is not None:
            self.add_metadata(key, value)

    def add_metadata(self, key: str, value: Any) -> None:
        self._metadata[key] = value

    def get_metadata(self, key: str, expected_type: Optional[Type[MetaT]] = None) -> Optional[MetaT]:
        value = self._metadata.get(key)
        if expected_type is not None and not isinstance(value, expected_type):
            return None
        return value

    def reset(self) -> None:
        self._not_found = False
        self._errors.clear()
        self._metadata.clear()


# ══════════════════════════════════════════════════════════════════════════
# Registry
# ══════════════════════════════════════════════════════════════════════════

class ValidatorRegistry:
    """
    Validators keyed by concrete request type.

    Lookups are exact-type: a validator registered for a base request class
    does not apply to its subclasses. Registration order is preserved.
    """

    def __init__(self) -> None:
        self._action: Dict[type, List[ActionValidator]] = defaultdict(list)
        self._schema: Dict[type, List[SchemaValidator]] = defaultdict(list)

    def add_action_validator(
        self, request_type: Type[RequestT], validator: ActionValidator[RequestT]
    ) -> "ValidatorRegistry":
        self._action[request_type].append(validator)
        return self

    def add_schema_validator(
        self, request_type: Type[RequestT], validator: SchemaValidator[RequestT]
    ) -> "ValidatorRegistry":
        self._schema[request_type].append(validator)
        return self

    def action_validators_for(self, request_type: type) -> List[ActionValidator]:
        return list(self._action.get(request_type, ()))

    def schema_validators_for(self, request_type: type) -> List[SchemaValidator]:
        return list(self._schema.get(request_type, ()))
