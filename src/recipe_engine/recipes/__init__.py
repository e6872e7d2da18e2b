"""Recipe interpreter.

A recipe is a JSON document with two ordered step lists:

1. AUTOCOMPLETE (``autocomplete_steps``): query -> numbered candidates
   (``TITLE1``, ``URL1``, ...), usually by loading a search page and looping
   over result elements.

2. DETAIL (``url_steps``): detail URL -> one structured record, by reading
   elements, calling JSON APIs and post-processing values with regex/replace.

Steps read and write a shared VariableStore. ``$NAME`` references in step
templates are substituted before each step runs.
"""

from .commands import StepExecutor
from .engine import RecipeEngine
from .fields import (
    FieldSchema,
    FieldValidation,
    RecipeFieldReport,
    default_field_schema,
    load_field_schema,
    validate_field,
    validate_recipe_fields,
)
from .models import Command, LoopConfig, Recipe, Step, StepConfig, StepOutput, StepType, resolve_step_type
from .output import filter_shown_fields, group_indexed_results, shape_result
from .variables import ValueKind, VariableStore

__all__ = [
    # Models
    "Command",
    "LoopConfig",
    "Recipe",
    "Step",
    "StepConfig",
    "StepOutput",
    "StepType",
    "resolve_step_type",
    # Variables
    "ValueKind",
    "VariableStore",
    # Field validation
    "FieldSchema",
    "FieldValidation",
    "RecipeFieldReport",
    "default_field_schema",
    "load_field_schema",
    "validate_field",
    "validate_recipe_fields",
    # Execution
    "RecipeEngine",
    "StepExecutor",
    # Output
    "filter_shown_fields",
    "group_indexed_results",
    "shape_result",
]
