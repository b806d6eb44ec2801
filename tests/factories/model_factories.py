"""
Randomized model factories.

Every factory call generates randomized non-identity fields
(names, languages, option payloads) so tests cannot rely on specific
default values.
"""

import json
import random
import string
import uuid


def _random_suffix(length: int = 6) -> str:
    """Generate random alphanumeric suffix."""
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=length))


def make_engine_id() -> str:
    return f"engine-{_random_suffix()}-{uuid.uuid4().hex[:8]}"


def make_build_id() -> str:
    return f"build-{_random_suffix()}-{uuid.uuid4().hex[:8]}"


def make_build_options() -> str:
    """Opaque JSON object string, randomized."""
    return json.dumps({"max_steps": random.randint(10, 5000), "tag": _random_suffix()})


def make_engine(engine_id: str = None, engine_type=None, **overrides):
    """
    Build a TranslationEngine with randomized non-identity fields.

    Args:
        engine_id: Optional fixed engine_id (generates random if None)
        engine_type: Optional engine type (NMT if None)
        **overrides: Any field override
    """
    from core.models import TranslationEngine, TranslationEngineType

    base = {
        "engine_id": engine_id or make_engine_id(),
        "engine_type": engine_type or TranslationEngineType.NMT,
        "name": f"Engine {_random_suffix()}",
        "source_language": random.choice(["en", "es", "fr", "de"]),
        "target_language": random.choice(["swh", "tpi", "ngu", "xyz"]),
        "build_revision": random.randint(0, 5),
    }
    base.update(overrides)
    return TranslationEngine(**base)


def make_build(build_id: str = None, job_state=None, job_runner=None, **overrides):
    """
    Build a Build with randomized stage and job id.
    """
    from core.models import Build, BuildJobRunnerType, BuildJobState

    base = {
        "build_id": build_id or make_build_id(),
        "job_id": uuid.uuid4().hex,
        "job_runner": job_runner or BuildJobRunnerType.LOCAL,
        "stage": random.choice(["preprocess", "train", "postprocess"]),
        "job_state": job_state or BuildJobState.PENDING,
        "build_options": make_build_options(),
    }
    base.update(overrides)
    return Build(**base)


def make_corpus(corpus_id: str = None, **overrides):
    """Corpus with one aligned text file pair per side."""
    from core.models import Corpus

    text_id = overrides.pop("text_id", f"TXT{random.randint(1, 99)}")
    base = {
        "id": corpus_id or f"corpus-{_random_suffix()}",
        "source_language": "en",
        "target_language": "swh",
        "train_on_all": True,
        "pretranslate_all": False,
        "source_files": [{"location": f"corpora/{text_id}.src.txt", "text_id": text_id}],
        "target_files": [{"location": f"corpora/{text_id}.trg.txt", "text_id": text_id}],
    }
    base.update(overrides)
    return Corpus(**base)
