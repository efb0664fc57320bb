"""Set-line codec: option records <-> "set ..." configuration lines.

Each entity type is described by a declarative table of fields instead of
hand-written parsing per feature:

    VLAN_CODEC = SetLineCodec(
        Vlan, "name",
        fields=[
            Field("vlan_id", "vlan-id", INT),
            Field("description", "description", STR, quoted=True),
        ],
    )

    VLAN_CODEC.encode(Vlan(name="users", vlan_id=10), "vlans")
    # ['set vlans users vlan-id 10']

Line presence is the encoding of "this field is set": zero values
("", 0, False, empty list) produce no line and decode back to themselves.
"""
import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence, Union

from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

# Field kinds
STR = "str"
INT = "int"
FLAG = "flag"
LIST = "list"
FIELD_KINDS = (STR, INT, FLAG, LIST)

CONFIG_OUTPUT_START = "<configuration-output>"
CONFIG_OUTPUT_END = "</configuration-output>"
SET_PREFIX = "set "


def quote(value: str) -> str:
    """Quote a value the way the device displays it, when it needs quoting."""
    value = str(value)
    if value and not any(c in value for c in ' \t"\';{}[]#'):
        return value
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def always_quote(value: str) -> str:
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


def unquote(value: str) -> str:
    """Reverse quote(); unquoted values are returned stripped."""
    value = value.strip()
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return value


def first_element(line: str) -> tuple[str, str]:
    """Split off the first (possibly quoted) token of a line.

    Returns (token, rest) with the token unquoted.
    """
    line = line.strip()
    if line.startswith('"'):
        i = 1
        while i < len(line):
            if line[i] == "\\":
                i += 2
                continue
            if line[i] == '"':
                return unquote(line[:i + 1]), line[i + 1:].strip()
            i += 1
        return unquote(line), ""
    token, _, rest = line.partition(" ")
    return token, rest.strip()


def config_lines(raw_text: str) -> Iterator[str]:
    """Yield the statements of a display-set dump, without "set " and framing."""
    for item in raw_text.splitlines():
        if CONFIG_OUTPUT_START in item:
            continue
        if CONFIG_OUTPUT_END in item:
            break
        item = item.strip()
        if item.startswith(SET_PREFIX):
            item = item[len(SET_PREFIX):]
        if item:
            yield item


def is_set(value: Any) -> bool:
    return bool(value)


@dataclass(frozen=True)
class Field:
    """One scalar or repeated option of a record.

    Kinds:
        STR   ``keyword value``
        INT   ``keyword 42``
        FLAG  bare ``keyword`` (or ``keyword literal``, e.g. "inactivity-timeout never")
        LIST  ``keyword value`` repeated once per value
    """
    name: str
    keyword: str
    kind: str = STR
    quoted: bool = False
    literal: Optional[str] = None

    def __post_init__(self):
        if self.kind not in FIELD_KINDS:
            raise ValueError(f"Unknown field kind {self.kind!r} for {self.name}")
        if self.literal and self.kind != FLAG:
            raise ValueError(f"Only flag fields take a literal ({self.name})")

    @property
    def statement(self) -> str:
        return f"{self.keyword} {self.literal}" if self.literal else self.keyword

    def render_value(self, value: Any) -> str:
        return always_quote(value) if self.quoted else quote(value)

    def statements(self, value: Any) -> list[str]:
        if not is_set(value):
            return []
        if self.kind == FLAG:
            return [self.statement]
        if self.kind == LIST:
            return [f"{self.keyword} {self.render_value(v)}" for v in value]
        return [f"{self.keyword} {self.render_value(value)}"]

    def match(self, line: str) -> Optional[str]:
        """Remainder of ``line`` after this field's keyword, or None."""
        if self.kind == FLAG:
            return "" if line == self.statement else None
        prefix = self.keyword + " "
        if line.startswith(prefix):
            return line[len(prefix):]
        return None

    def apply(self, record: Any, remainder: str) -> None:
        if self.kind == FLAG:
            setattr(record, self.name, True)
        elif self.kind == INT:
            try:
                setattr(record, self.name, int(remainder))
            except ValueError:
                raise ValidationError(
                    f"failed to convert '{remainder}' to integer for {self.keyword}",
                    field_name=self.name,
                )
        elif self.kind == LIST:
            getattr(record, self.name).append(unquote(remainder))
        else:
            setattr(record, self.name, unquote(remainder))


@dataclass(frozen=True)
class Block:
    """List-typed sub-block keyed by an inner name: ``keyword <name> ...``."""
    name: str
    keyword: str
    codec: "SetLineCodec"


class Exclusive(tuple):
    """Field names of which at most one may be set."""

    def __new__(cls, *names: str):
        return super().__new__(cls, names)


class SetLineCodec:
    """Encode/decode one record type against its field table."""

    def __init__(
        self,
        record_type: type,
        key_field: str,
        fields: Sequence[Field],
        blocks: Sequence[Block] = (),
        exclusive: Sequence[Exclusive] = (),
        required: Sequence[str] = (),
        bare_header: bool = False,
    ):
        self.record_type = record_type
        self.key_field = key_field
        self.fields = list(fields)
        self.blocks = list(blocks)
        self.exclusive = [Exclusive(*names) for names in exclusive]
        self.required = list(required)
        self.bare_header = bare_header

        # Exact flag statements first, then the longest keyword wins
        self._matchers = sorted(
            self.fields,
            key=lambda f: (f.kind != FLAG, -len(f.statement)),
        )

    # === Encoding ===

    def key_of(self, record_or_key: Union[Any, str]) -> str:
        if isinstance(record_or_key, str):
            key = record_or_key
        else:
            key = getattr(record_or_key, self.key_field)
        if not key:
            raise ValidationError(f"missing {self.key_field}", field_name=self.key_field)
        return str(key)

    def validate(self, record: Any) -> None:
        """Fail fast on contradictory or incomplete records."""
        key = getattr(record, self.key_field, "")
        for names in self.exclusive:
            present = [n for n in names if is_set(getattr(record, n))]
            if len(present) > 1:
                raise ValidationError(
                    f"conflict between {' and '.join(repr(n) for n in present)}",
                    field_name=present[0],
                    entity=key or None,
                )
        for name in self.required:
            if not is_set(getattr(record, name)):
                raise ValidationError(
                    f"missing required field '{name}'", field_name=name, entity=key or None
                )
        for block in self.blocks:
            seen: set[str] = set()
            for sub in getattr(record, block.name):
                sub_key = block.codec.key_of(sub)
                if sub_key in seen:
                    raise ValidationError(
                        f"multiple blocks {block.keyword} with the same name {sub_key}",
                        field_name=block.name,
                        entity=key or None,
                    )
                seen.add(sub_key)
                block.codec.validate(sub)

    def statements(self, record: Any) -> list[str]:
        """Statements relative to the entity, in table order."""
        out: list[str] = []
        for fld in self.fields:
            out.extend(fld.statements(getattr(record, fld.name)))
        for block in self.blocks:
            for sub in getattr(record, block.name):
                header = f"{block.keyword} {quote(block.codec.key_of(sub))}"
                sub_statements = block.codec.statements(sub)
                if block.codec.bare_header or not sub_statements:
                    out.append(header)
                out.extend(f"{header} {s}" for s in sub_statements)
        return out

    def prefix(self, key: str, base_path: str) -> str:
        return f"{base_path} {quote(key)}"

    def encode(self, record: Any, base_path: str) -> list[str]:
        """Translate a record into ordered ``set`` lines rooted at base_path.

        Raises:
            ValidationError: before any line is produced
        """
        key = self.key_of(record)
        self.validate(record)
        statements = self.statements(record)
        if not statements and not self.bare_header:
            raise ValidationError(f"nothing to set for {base_path} {key}", entity=key)

        prefix = f"set {self.prefix(key, base_path)}"
        lines = [prefix] if self.bare_header else []
        lines.extend(f"{prefix} {s}" for s in statements)
        return lines

    def delete(self, record_or_key: Union[Any, str], base_path: str) -> list[str]:
        """The single line removing the entity."""
        return [f"delete {self.prefix(self.key_of(record_or_key), base_path)}"]

    def render(self, record: Any) -> str:
        """The record as the device shows it with "| display set relative"."""
        return "\n".join(f"set {s}" for s in self.statements(record))

    # === Decoding ===

    def new_record(self, key: str) -> Any:
        return self.record_type(**{self.key_field: key})

    def decode(self, raw_text: str, key: str) -> Optional[Any]:
        """Rebuild a record from a relative display-set dump.

        Returns None when the dump is empty: the entity does not exist.
        """
        if not raw_text.strip():
            return None
        record = self.new_record(key)
        for line in config_lines(raw_text):
            self.decode_line(record, line)
        return record

    def decode_line(self, record: Any, line: str) -> None:
        for block in self.blocks:
            prefix = block.keyword + " "
            if line.startswith(prefix):
                sub_key, rest = first_element(line[len(prefix):])
                subs = getattr(record, block.name)
                sub = next(
                    (s for s in subs if getattr(s, block.codec.key_field) == sub_key),
                    None,
                )
                if sub is None:
                    sub = block.codec.new_record(sub_key)
                    subs.append(sub)
                if rest:
                    block.codec.decode_line(sub, rest)
                return

        for fld in self._matchers:
            remainder = fld.match(line)
            if remainder is not None:
                fld.apply(record, remainder)
                return

        logger.debug(f"{self.record_type.__name__}: ignoring line '{line}'")
