# params.py

from typing import Dict

from .errors import MalformedParametersError
from .models import ParameterMode, ParameterSet

DEFAULTS_MARKER = "-"
PAIR_SEPARATOR = ","
KEY_VALUE_SEPARATOR = "="


def parse_parameters(raw: str, required: bool = False) -> ParameterSet:
    """
    Parse the command-line parameter grammar.

    ``"key=value,...,key=value"`` gives explicit parameters (values may be
    empty), ``"-"`` asks Jenkins to use the job's defaults, and an empty
    string means a plain build without parameters.

    Args:
        raw: The parameter string as typed by the user
        required: Reject an empty string instead of returning the plain mode

    Raises:
        MalformedParametersError: On a segment without exactly one ``=``, an
            empty or repeated key, or an empty string when ``required``
    """
    raw = raw or ""
    if raw == DEFAULTS_MARKER:
        return ParameterSet(mode=ParameterMode.DEFAULTS)
    if raw == "":
        if required:
            raise MalformedParametersError(
                "parameter list is empty",
                suggestion="Use key=value,...,key=value or '-' for job defaults",
            )
        return ParameterSet(mode=ParameterMode.NONE)

    values: Dict[str, str] = {}
    for segment in raw.split(PAIR_SEPARATOR):
        if segment.count(KEY_VALUE_SEPARATOR) != 1:
            raise MalformedParametersError(
                f"malformed parameter '{segment}': expected exactly one '='",
                suggestion="Use key=value,...,key=value",
                details={"segment": segment},
            )
        key, value = segment.split(KEY_VALUE_SEPARATOR)
        if not key:
            raise MalformedParametersError(
                f"malformed parameter '{segment}': empty name",
                details={"segment": segment},
            )
        if key in values:
            raise MalformedParametersError(
                f"parameter '{key}' given more than once",
                details={"segment": segment},
            )
        values[key] = value

    return ParameterSet(mode=ParameterMode.EXPLICIT, values=values)


def encode_parameters(parameters: ParameterSet) -> str:
    """Render a parameter set back into the command-line grammar."""
    if parameters.mode == ParameterMode.DEFAULTS:
        return DEFAULTS_MARKER
    if parameters.mode == ParameterMode.NONE:
        return ""
    return PAIR_SEPARATOR.join(
        f"{key}{KEY_VALUE_SEPARATOR}{value}" for key, value in parameters.values.items()
    )


def from_build_parameters(pairs) -> ParameterSet:
    """
    Build a parameter set from the (name, value) pairs of a previous build.

    Jenkins expects all parameters as strings: booleans are lowercased and
    list values are comma-separated.
    """
    values: Dict[str, str] = {}
    for name, value in pairs:
        if isinstance(value, bool):
            values[name] = str(value).lower()
        elif isinstance(value, list):
            values[name] = ','.join(str(v) for v in value)
        elif value is None:
            values[name] = ""
        else:
            values[name] = str(value)
    if not values:
        return ParameterSet(mode=ParameterMode.NONE)
    return ParameterSet(mode=ParameterMode.EXPLICIT, values=values)
