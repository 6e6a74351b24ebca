from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SyntaxKind(str, Enum):
    # Declaration taxonomy
    SOURCE_FILE = "source_file"
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    ENUM_MEMBER = "enum_member"
    FUNCTION = "function"
    METHOD_DECLARATION = "method_declaration"
    METHOD_SIGNATURE = "method_signature"
    MODULE = "module"  # namespace or module block
    PROPERTY_DECLARATION = "property_declaration"
    PROPERTY_SIGNATURE = "property_signature"
    TYPE_ALIAS = "type_alias"
    VARIABLE_DECLARATION = "variable_declaration"  # a single declarator

    # Statements that wrap a declaration
    VARIABLE_DECLARATION_LIST = "variable_declaration_list"
    EXPORT_STATEMENT = "export_statement"
    AMBIENT_DECLARATION = "ambient_declaration"
    EXPRESSION_STATEMENT = "expression_statement"

    # Reference nodes
    TYPE_REFERENCE = "type_reference"
    TYPE_IDENTIFIER = "type_identifier"  # bare type name used as a reference
    EXPRESSION_WITH_TYPE_ARGUMENTS = "expression_with_type_arguments"
    TYPE_QUERY = "type_query"

    IDENTIFIER = "identifier"
    JSDOC_COMMENT = "jsdoc_comment"
    COMMENT = "comment"
    BLOCK = "block"  # implementation body, never rewritten

    # Tokens
    EXPORT_KEYWORD = "export_keyword"
    DEFAULT_KEYWORD = "default_keyword"
    DECLARE_KEYWORD = "declare_keyword"
    CLASS_KEYWORD = "class_keyword"
    INTERFACE_KEYWORD = "interface_keyword"
    ENUM_KEYWORD = "enum_keyword"
    NAMESPACE_KEYWORD = "namespace_keyword"
    MODULE_KEYWORD = "module_keyword"
    TYPE_KEYWORD = "type_keyword"
    FUNCTION_KEYWORD = "function_keyword"
    MODIFIER = "modifier"  # abstract, const, async
    COMMA = "comma"
    SEMICOLON = "semicolon"
    TOKEN = "token"

    OTHER = "other"


class ReleaseTag(str, Enum):
    NONE = "none"
    INTERNAL = "internal"
    ALPHA = "alpha"
    BETA = "beta"
    PUBLIC = "public"


class RollupKind(str, Enum):
    INTERNAL_RELEASE = "internal"  # everything reachable from the entry point
    PREVIEW_RELEASE = "preview"  # drops @alpha and @internal
    PUBLIC_RELEASE = "public"  # drops @beta, @alpha and @internal


class NewlineKind(str, Enum):
    LF = "lf"
    CRLF = "crlf"


# ---------------------------------------------------------------------------
# Value models
# ---------------------------------------------------------------------------


class ImportInfo(BaseModel):
    """Where an externally imported symbol comes from."""

    model_config = ConfigDict(frozen=True)

    module_path: str  # e.g. "lodash" or "@scope/pkg/sub"
    export_name: str  # "*" for namespace imports, "default" for default imports

    @property
    def key(self) -> str:
        return f"{self.module_path}:{self.export_name}"


class CommentRange(BaseModel):
    start: int  # byte offsets in the owning source file
    end: int
    text: str


class RollupResult(BaseModel):
    entry_point: str
    entry_count: int
    files: dict[RollupKind, str] = Field(default_factory=dict)
    package_documentation: Optional[str] = None
