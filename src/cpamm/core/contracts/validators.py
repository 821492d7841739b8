"""
Контракты сериализованного состояния пула (JSON Schema, Draft 2020-12).

Снапшот и запись журнала описаны двумя схемами из каталога schema/:
- pool_snapshot.json — форма PoolSnapshot.model_dump(mode="json")
- event_record.json  — форма EventRecord.model_dump(mode="json"),
  payload выбирается по полю kind

Pool Engine проверяет по ним каждую принятую операцию при
PoolEngineConfig.validate_contracts=True; внешний код может проверять
выгруженный журнал или снапшоты теми же валидаторами.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterator, List

import jsonschema
from jsonschema import Draft202012Validator, ValidationError
from jsonschema.exceptions import best_match
from pydantic import BaseModel

SCHEMA_DIR = Path(__file__).parent / "schema"


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """Чтение схем из каталога с meta-проверкой и кэшем скомпилированных валидаторов."""

    def __init__(self, schema_dir: Path | None = None):
        self._schema_dir = schema_dir or SCHEMA_DIR
        if not self._schema_dir.is_dir():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")
        self._schemas: Dict[str, Dict[str, Any]] = {}
        self._validators: Dict[str, Draft202012Validator] = {}

    @property
    def schema_dir(self) -> Path:
        return self._schema_dir

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Схема по имени файла без расширения.

        Raises:
            FileNotFoundError: нет файла schema_name.json
            ValueError: файл не является корректной схемой Draft 2020-12
        """
        cached = self._schemas.get(schema_name)
        if cached is not None:
            return cached

        path = self._schema_dir / f"{schema_name}.json"
        if not path.is_file():
            raise FileNotFoundError(f"Schema not found: {path}")
        schema = json.loads(path.read_text(encoding="utf-8"))

        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_name}.json: {e.message}") from e

        self._schemas[schema_name] = schema
        return schema

    def validator_for(self, schema_name: str) -> Draft202012Validator:
        """Скомпилированный валидатор схемы (один на загрузчик)."""
        validator = self._validators.get(schema_name)
        if validator is None:
            validator = Draft202012Validator(self.load_schema(schema_name))
            self._validators[schema_name] = validator
        return validator


_SCHEMA_LOADER = SchemaLoader()


def format_error(error: ValidationError) -> str:
    """'payload.amount_in: -1.0 is less than ...'; корень документа — '<root>'."""
    path = ".".join(str(part) for part in error.absolute_path) or "<root>"
    return f"{path}: {error.message}"


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


class ContractValidator:
    """Проверка словарей и pydantic-моделей против одной схемы."""

    schema_name: str = ""

    def __init__(self, schema_name: str | None = None, loader: SchemaLoader | None = None):
        self.schema_name = schema_name or self.schema_name
        if not self.schema_name:
            raise ValueError("schema_name is required")
        loader = loader or _SCHEMA_LOADER
        self.validator = loader.validator_for(self.schema_name)
        self.schema = self.validator.schema

    def validate(self, data: Dict[str, Any]) -> None:
        """Raises: ValidationError на первом (самом релевантном) нарушении."""
        error = best_match(self.validator.iter_errors(data))
        if error is not None:
            raise error

    def validate_model(self, model: BaseModel) -> None:
        """Проверка модели в её JSON-форме (enum -> значение, payload с kind)."""
        self.validate(model.model_dump(mode="json"))

    def is_valid(self, data: Dict[str, Any]) -> bool:
        return self.validator.is_valid(data)

    def iter_errors(self, data: Dict[str, Any]) -> Iterator[ValidationError]:
        return self.validator.iter_errors(data)

    def error_messages(self, data: Dict[str, Any]) -> List[str]:
        """Все нарушения строками 'путь: сообщение', отсортированные по пути."""
        errors = sorted(self.validator.iter_errors(data), key=lambda e: list(map(str, e.absolute_path)))
        return [format_error(e) for e in errors]


class PoolSnapshotValidator(ContractValidator):
    schema_name = "pool_snapshot"


class EventRecordValidator(ContractValidator):
    schema_name = "event_record"


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def validate_pool_snapshot(data: Dict[str, Any] | BaseModel) -> None:
    """Проверка снапшота (dict или PoolSnapshot). Raises: ValidationError."""
    validator = PoolSnapshotValidator()
    if isinstance(data, BaseModel):
        validator.validate_model(data)
    else:
        validator.validate(data)


def validate_event_record(data: Dict[str, Any] | BaseModel) -> None:
    """Проверка записи журнала (dict или EventRecord). Raises: ValidationError."""
    validator = EventRecordValidator()
    if isinstance(data, BaseModel):
        validator.validate_model(data)
    else:
        validator.validate(data)
