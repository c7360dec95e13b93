import os
from typing import Callable, TypeVar

TRUE_FLAG_VALUES = {"true", "1", "yes", "on"}

N = TypeVar("N", int, float)


def _env_flag(env_var: str, *, default: bool = False) -> bool:
    """Return the boolean value of ``env_var`` respecting common true strings."""

    value = os.environ.get(env_var)
    if value is None:
        return default
    return value.strip().lower() in TRUE_FLAG_VALUES


def _env_number(
    env_var: str,
    convert: Callable[[str], N],
    *,
    default: N,
    kind: str,
    minimum: N | None = None,
    maximum: N | None = None,
) -> N:
    value = os.environ.get(env_var)
    if value is None:
        return default
    try:
        parsed = convert(value.strip())
    except ValueError as exc:
        raise ValueError(f"{env_var} must be {kind}") from exc
    if minimum is not None and parsed < minimum:
        raise ValueError(f"{env_var} must be at least {minimum}")
    if maximum is not None and parsed > maximum:
        raise ValueError(f"{env_var} must be at most {maximum}")
    return parsed


def _env_int(env_var: str, *, default: int, minimum: int | None = None) -> int:
    """Return the integer value of ``env_var`` with optional lower bound."""

    return _env_number(env_var, int, default=default, kind="an integer", minimum=minimum)


def _env_float(
    env_var: str,
    *,
    default: float,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    """Return the float value of ``env_var`` with optional bounds checking."""

    return _env_number(
        env_var,
        float,
        default=default,
        kind="a float",
        minimum=minimum,
        maximum=maximum,
    )


def _env_str(env_var: str, *, default: str, allow_empty: bool = False) -> str:
    value = os.environ.get(env_var)
    if value is None:
        return default
    if not value and not allow_empty:
        raise ValueError(f"{env_var} must not be empty")
    return value


def _env_csv(env_var: str, *, default: tuple[str, ...]) -> tuple[str, ...]:
    """Return the comma separated entries of ``env_var`` with blanks removed."""

    value = os.environ.get(env_var)
    if value is None:
        return default
    return tuple(part.strip() for part in value.split(",") if part.strip())
