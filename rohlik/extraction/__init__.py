"""
HTML extraction: strategy primitives, declarative selector tables and the engine.
"""

from .engine import ExtractionEngine
from .selectors import FORM_INTENTS, FormIntent
from .strategies import (
    Attr,
    EntitySchema,
    Exists,
    FieldSpec,
    InputValue,
    KeyValueRows,
    Pattern,
    Strategy,
    Text,
    TextList,
)

__all__ = [
    'ExtractionEngine',
    'FORM_INTENTS',
    'FormIntent',
    'Strategy',
    'Text',
    'Attr',
    'Pattern',
    'Exists',
    'InputValue',
    'TextList',
    'KeyValueRows',
    'FieldSpec',
    'EntitySchema',
]
