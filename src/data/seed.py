"""Loading of bundled government scheme data.

Reads scheme definitions from ``central_schemes.json`` and turns them into
validated :class:`SchemeDocument` instances.  A scheme whose eligibility
criteria fail validation is rejected here, at ingestion, and never reaches
the evaluator.
"""

from __future__ import annotations

from pathlib import Path

import orjson
import structlog
from pydantic import ValidationError as PydanticValidationError

from src.errors import InvalidCriteria
from src.models.criteria import EligibilityCriteria
from src.models.scheme import SchemeDocument

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

_DATA_DIR: Path = Path(__file__).resolve().parent / "schemes"
_CENTRAL_SCHEMES_PATH: Path = _DATA_DIR / "central_schemes.json"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_scheme(raw: dict) -> SchemeDocument:
    """Parse a raw JSON dict into a validated :class:`SchemeDocument`.

    Raises
    ------
    InvalidCriteria
        If the eligibility block is malformed or fails
        :meth:`EligibilityCriteria.validate`.
    """
    scheme_id = raw.get("scheme_id", "unknown")
    try:
        criteria = EligibilityCriteria.model_validate(raw.get("eligibility", {}))
    except PydanticValidationError as exc:
        raise InvalidCriteria(f"scheme {scheme_id}: {exc.errors()[0]['msg']}") from exc

    try:
        criteria.validate()
    except InvalidCriteria as exc:
        raise InvalidCriteria(f"scheme {scheme_id}: {exc.message}") from exc

    return SchemeDocument.model_validate({**raw, "eligibility": criteria})


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_schemes(path: Path | None = None) -> list[SchemeDocument]:
    """Load government scheme data from a JSON file.

    Parameters
    ----------
    path:
        Path to the JSON file.  Defaults to the bundled
        ``central_schemes.json``.

    Returns
    -------
    list[SchemeDocument]
        Schemes that passed validation.  Rejected schemes are logged and
        skipped.

    Raises
    ------
    FileNotFoundError
        If the JSON file does not exist.
    orjson.JSONDecodeError
        If the JSON is malformed.
    """
    file_path = path or _CENTRAL_SCHEMES_PATH

    if not file_path.exists():
        raise FileNotFoundError(f"Scheme data file not found: {file_path}")

    raw_schemes: list[dict] = orjson.loads(file_path.read_bytes())

    schemes: list[SchemeDocument] = []
    for raw in raw_schemes:
        try:
            schemes.append(parse_scheme(raw))
        except InvalidCriteria as exc:
            logger.warning(
                "seed.scheme_rejected",
                scheme_id=raw.get("scheme_id", "unknown"),
                reason=exc.message,
            )
        except PydanticValidationError:
            logger.warning(
                "seed.parse_error",
                scheme_id=raw.get("scheme_id", "unknown"),
                exc_info=True,
            )

    logger.info(
        "seed.loaded_schemes",
        count=len(schemes),
        rejected=len(raw_schemes) - len(schemes),
        source=str(file_path),
    )
    return schemes
