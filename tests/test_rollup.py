from pathlib import Path

import pytest

from dtsrollup.errors import InternalError, RollupInputError
from dtsrollup.lang.typescript import TypeScriptProgram
from dtsrollup.models import NewlineKind, ReleaseTag, RollupKind
from dtsrollup.rollup import RollupGenerator, get_sort_key, should_include_release_tag


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #
def _write_files(root: Path, files: dict[str, str]) -> None:
    for rel_path, text in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


def _analyze(
    root: Path, files: dict[str, str], entry: str = "index.d.ts", **kwargs
) -> RollupGenerator:
    _write_files(root, files)
    program = TypeScriptProgram(root)
    generator = RollupGenerator(program, program.get_source_file(entry), **kwargs)
    generator.analyze()
    return generator


ALPHA_AND_PUBLIC = """\
/** @public */
export declare function keep(): void;
/** @alpha */
export declare function experimental(): void;
"""


# --------------------------------------------------------------------------- #
# Scenarios
# --------------------------------------------------------------------------- #
def test_local_reference_is_pulled_into_rollup(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {"index.d.ts": "export declare function a(): B;\ninterface B {\n}\n"},
    )

    expected = "\nexport declare function a(): B;\n\ndeclare interface B {\n}\n"
    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == expected
    assert generator.write_output(RollupKind.INTERNAL_RELEASE) == expected

    names = [(e.name_for_emit, e.exported) for e in generator.entries]
    assert names == [("a", True), ("B", False)]


def test_name_collision_gets_numbered_suffix(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "import { Options as InnerOptions } from './inner';\n"
                "export interface Options {\n"
                "    inner: InnerOptions;\n"
                "}\n"
            ),
            "inner.d.ts": "export interface Options {\n    verbose: boolean;\n}\n",
        },
    )

    exported = generator.find_entry("Options")
    renamed = generator.find_entry("Options_2")
    assert exported is not None and exported.exported
    assert renamed is not None and not renamed.exported
    assert renamed.original_name == "Options"

    assert generator.write_output(RollupKind.INTERNAL_RELEASE) == (
        "\n"
        "export declare interface Options {\n"
        "    inner: Options_2;\n"
        "}\n"
        "\n"
        "declare interface Options_2 {\n"
        "    verbose: boolean;\n"
        "}\n"
    )


def test_alpha_entry_is_removed_from_public_and_preview(tmp_path: Path):
    generator = _analyze(tmp_path, {"index.d.ts": ALPHA_AND_PUBLIC})

    removed = (
        "\n// Removed for this release type: experimental\n"
        "\n/** @public */\nexport declare function keep(): void;\n"
    )
    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == removed
    assert generator.write_output(RollupKind.PREVIEW_RELEASE) == removed
    assert generator.write_output(RollupKind.INTERNAL_RELEASE) == (
        "\n/** @alpha */\nexport declare function experimental(): void;\n"
        "\n/** @public */\nexport declare function keep(): void;\n"
    )


def test_beta_entry_is_kept_in_preview_only(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {"index.d.ts": "/** @beta */\nexport declare class Widget {\n}\n"},
    )

    assert "declare class Widget" in generator.write_output(RollupKind.PREVIEW_RELEASE)
    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == (
        "\n// Removed for this release type: Widget\n"
    )


def test_omit_trimming_comments(tmp_path: Path):
    generator = _analyze(
        tmp_path, {"index.d.ts": ALPHA_AND_PUBLIC}, omit_trimming_comments=True
    )
    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == (
        "\n/** @public */\nexport declare function keep(): void;\n"
    )


# --------------------------------------------------------------------------- #
# Release tags
# --------------------------------------------------------------------------- #
def test_first_release_tag_wins(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "/** @beta */\nexport declare function f(a: string): void;\n"
                "/** @alpha */\nexport declare function f(a: number): void;\n"
            )
        },
    )
    entry = generator.find_entry("f")
    assert entry is not None
    assert entry.visibility_tier == ReleaseTag.BETA


def test_untagged_entry_has_no_tier(tmp_path: Path):
    generator = _analyze(tmp_path, {"index.d.ts": "export declare const x: number;\n"})
    assert [e.visibility_tier for e in generator.entries] == [ReleaseTag.NONE]


def test_should_include_release_tag_table():
    assert should_include_release_tag(ReleaseTag.INTERNAL, RollupKind.INTERNAL_RELEASE)
    assert not should_include_release_tag(ReleaseTag.ALPHA, RollupKind.PREVIEW_RELEASE)
    assert should_include_release_tag(ReleaseTag.BETA, RollupKind.PREVIEW_RELEASE)
    assert should_include_release_tag(ReleaseTag.NONE, RollupKind.PREVIEW_RELEASE)
    assert not should_include_release_tag(ReleaseTag.BETA, RollupKind.PUBLIC_RELEASE)
    assert should_include_release_tag(ReleaseTag.PUBLIC, RollupKind.PUBLIC_RELEASE)
    assert should_include_release_tag(ReleaseTag.NONE, RollupKind.PUBLIC_RELEASE)
    with pytest.raises(InternalError):
        should_include_release_tag(ReleaseTag.NONE, "bogus")  # type: ignore[arg-type]


# --------------------------------------------------------------------------- #
# Nested trimming
# --------------------------------------------------------------------------- #
def test_nested_member_is_trimmed(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "/** @public */\n"
                "export interface Config {\n"
                "    name: string;\n"
                "    /** @alpha */\n"
                "    secret: string;\n"
                "}\n"
            )
        },
    )

    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == (
        "\n/** @public */\n"
        "export declare interface Config {\n"
        "    name: string;\n"
        "    /* Removed for this release type: secret */\n"
        "}\n"
    )
    internal = generator.write_output(RollupKind.INTERNAL_RELEASE)
    assert "    /** @alpha */\n    secret: string;\n" in internal


def test_enum_member_trimming_swallows_comma(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "export declare enum Color {\n"
                "    Red = 0,\n"
                "    /** @beta */\n"
                "    Green = 1,\n"
                "    Blue = 2\n"
                "}\n"
            )
        },
    )

    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == (
        "\nexport declare enum Color {\n"
        "    Red = 0,\n"
        "    /* Removed for this release type: Green */\n"
        "    Blue = 2\n"
        "}\n"
    )
    assert "Green = 1," in generator.write_output(RollupKind.PREVIEW_RELEASE)


def test_namespace_member_is_trimmed(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "export declare namespace Shapes {\n"
                "    interface Circle {\n"
                "        radius: number;\n"
                "    }\n"
                "    /** @alpha */\n"
                "    interface Square {\n"
                "        side: number;\n"
                "    }\n"
                "}\n"
            )
        },
    )

    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == (
        "\nexport declare namespace Shapes {\n"
        "    interface Circle {\n"
        "        radius: number;\n"
        "    }\n"
        "    /* Removed for this release type: Square */\n"
        "}\n"
    )


def test_nested_trimming_without_comments(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "export declare class Service {\n"
                "    start(): void;\n"
                "    /** @internal */\n"
                "    debug(): void;\n"
                "}\n"
            )
        },
        omit_trimming_comments=True,
    )
    output = generator.write_output(RollupKind.PUBLIC_RELEASE)
    assert "debug" not in output
    assert "Removed" not in output
    assert "    start(): void;\n" in output


# --------------------------------------------------------------------------- #
# Declarations
# --------------------------------------------------------------------------- #
def test_variables_become_separate_statements(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "export declare const a: number, b: string;\n"
                "/** The version */\n"
                "export declare let version: string;\n"
            )
        },
    )

    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == (
        "\nexport declare const a: number;\n"
        "\nexport declare const b: string;\n"
        "\n/** The version */\nexport declare let version: string;\n"
    )


def test_abstract_class_keeps_modifier_after_prefix(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {"index.d.ts": "export declare abstract class Base {\n    abstract run(): void;\n}\n"},
    )
    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == (
        "\nexport declare abstract class Base {\n    abstract run(): void;\n}\n"
    )


def test_merged_declarations_are_emitted_in_order(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "export interface Merged {\n    a: string;\n}\n"
                "export interface Merged {\n    b: string;\n}\n"
            )
        },
    )
    output = generator.write_output(RollupKind.INTERNAL_RELEASE)
    assert output == (
        "\nexport declare interface Merged {\n    a: string;\n}\n"
        "\nexport declare interface Merged {\n    b: string;\n}\n"
    )


def test_re_exports_are_followed(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": "export { Helper } from './helper';\nexport * from './more';\n",
            "helper.d.ts": "export declare class Helper {\n    run(): void;\n}\n",
            "more.d.ts": "export type Extra = string;\n",
        },
    )

    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == (
        "\nexport declare type Extra = string;\n"
        "\nexport declare class Helper {\n    run(): void;\n}\n"
    )


def test_renamed_export_uses_exported_name(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {"index.d.ts": "declare class Impl {\n}\nexport { Impl as Public };\n"},
    )
    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == (
        "\nexport declare class Public {\n}\n"
    )


def test_reference_cycle_terminates(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "export interface A {\n    b: B;\n}\n"
                "interface B {\n    a: A;\n    c: C;\n}\n"
                "interface C {\n    b: B;\n}\n"
            )
        },
    )
    assert [e.name_for_emit for e in generator.entries] == ["A", "B", "C"]


def test_unreferenced_local_is_not_emitted(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {"index.d.ts": "export declare function f(): void;\ninterface Unused {\n}\n"},
    )
    assert "Unused" not in generator.write_output(RollupKind.INTERNAL_RELEASE)


def test_ambient_globals_are_not_emitted(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                '/// <reference path="globals.d.ts" />\n'
                "export declare function f(): GlobalThing;\n"
            ),
            "globals.d.ts": "declare interface GlobalThing {\n}\n",
        },
    )
    assert [e.name_for_emit for e in generator.entries] == ["f"]


def test_long_reference_chain(tmp_path: Path):
    count = 3000
    lines = ["export interface I0 {\n    next: I1;\n}\n"]
    for i in range(1, count - 1):
        lines.append(f"interface I{i} {{\n    next: I{i + 1};\n}}\n")
    lines.append(f"interface I{count - 1} {{\n}}\n")

    generator = _analyze(tmp_path, {"index.d.ts": "".join(lines)})

    assert len(generator.entries) == count
    assert all(e.symbol.analyzed for e in generator.entries)
    output = generator.write_output(RollupKind.PUBLIC_RELEASE)
    assert f"declare interface I{count - 1} {{\n}}" in output
    assert "export declare interface I0 {" in output


# --------------------------------------------------------------------------- #
# Imports and directives
# --------------------------------------------------------------------------- #
def test_external_imports_are_emitted_and_deduplicated(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "import { Widget } from 'widgets';\n"
                "import * as path from 'path';\n"
                "import Default from 'dflt';\n"
                "import { Widget as W2 } from 'widgets';\n"
                "export declare function make(p: path.ParsedPath, d: Default, w: W2): Widget;\n"
            )
        },
    )

    output = generator.write_output(RollupKind.PUBLIC_RELEASE)
    assert output == (
        "import { default as Default } from 'dflt';\n"
        "import * as path from 'path';\n"
        "import { Widget as W2 } from 'widgets';\n"
        "\n"
        "export declare function make(p: path.ParsedPath, d: Default, w: W2): W2;\n"
    )
    imports = [e for e in generator.entries if e.symbol.imported]
    assert len(imports) == 3


def test_import_with_same_name(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "import { Observable } from 'rxjs';\n"
                "export declare function watch(): Observable<string>;\n"
            )
        },
    )
    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == (
        "import { Observable } from 'rxjs';\n"
        "\n"
        "export declare function watch(): Observable<string>;\n"
    )


def test_reference_directives_are_sorted(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                '/// <reference types="node" />\n'
                '/// <reference lib="es2018" />\n'
                '/// <reference types="jest" />\n'
                "export declare function f(): void;\n"
            )
        },
    )
    assert generator.type_reference_directives == ["jest", "node"]
    assert generator.lib_reference_directives == ["es2018"]
    assert generator.write_output(RollupKind.PUBLIC_RELEASE) == (
        '/// <reference types="jest" />\n'
        '/// <reference types="node" />\n'
        '/// <reference lib="es2018" />\n'
        "\n"
        "export declare function f(): void;\n"
    )


def test_package_documentation_is_hoisted(tmp_path: Path):
    package_doc = "/**\n * Tools for widgets.\n * @packageDocumentation\n */"
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                f"{package_doc}\n\n"
                "/** Makes a widget. */\n"
                "export declare function make(): void;\n"
            )
        },
    )

    output = generator.write_output(RollupKind.PUBLIC_RELEASE)
    assert generator.package_documentation == package_doc
    assert output.startswith(package_doc + "\n")
    assert output.count("@packageDocumentation") == 1
    assert output.endswith("\n/** Makes a widget. */\nexport declare function make(): void;\n")


# --------------------------------------------------------------------------- #
# Naming and ordering
# --------------------------------------------------------------------------- #
def test_sort_key():
    assert get_sort_key("example") == "example"
    assert get_sort_key("_example") == "example*"
    assert get_sort_key("example") < get_sort_key("_example") < get_sort_key("examplea")


def test_entries_sort_case_insensitively(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "export interface Zeta {\n}\n"
                "export interface _Internal {\n}\n"
                "export interface alpha {\n}\n"
                "export interface Internal {\n}\n"
            )
        },
    )
    assert [e.name_for_emit for e in generator.entries] == [
        "alpha",
        "Internal",
        "_Internal",
        "Zeta",
    ]


def test_sort_key_follows_name_for_emit(tmp_path: Path):
    generator = _analyze(tmp_path, {"index.d.ts": "export interface A {\n}\n"})
    entry = generator.entries[0]
    assert entry.sort_key == "A"
    entry.name_for_emit = "_B"
    assert entry.sort_key == "B*"


def test_output_is_deterministic(tmp_path: Path):
    files = {
        "index.d.ts": (
            "import { Options as InnerOptions } from './inner';\n"
            "export interface Options {\n    inner: InnerOptions;\n    other: Other;\n}\n"
            "interface Other {\n}\n"
        ),
        "inner.d.ts": "export interface Options {\n}\n",
    }
    first = _analyze(tmp_path, files).write_output(RollupKind.INTERNAL_RELEASE)
    second = _analyze(tmp_path, files).write_output(RollupKind.INTERNAL_RELEASE)
    assert first == second


# --------------------------------------------------------------------------- #
# Faults
# --------------------------------------------------------------------------- #
def test_analyze_twice_fails(tmp_path: Path):
    generator = _analyze(tmp_path, {"index.d.ts": "export declare const x: number;\n"})
    with pytest.raises(InternalError):
        generator.analyze()


def test_write_output_requires_analyze(tmp_path: Path):
    _write_files(tmp_path, {"index.d.ts": "export declare const x: number;\n"})
    program = TypeScriptProgram(tmp_path)
    generator = RollupGenerator(program, program.get_source_file("index.d.ts"))
    with pytest.raises(InternalError):
        generator.write_output(RollupKind.PUBLIC_RELEASE)


def test_unknown_release_kind_fails(tmp_path: Path):
    generator = _analyze(tmp_path, {"index.d.ts": "export declare const x: number;\n"})
    with pytest.raises(InternalError):
        generator.write_output("bogus")  # type: ignore[arg-type]


def test_symbol_exported_twice_fails(tmp_path: Path):
    with pytest.raises(RollupInputError, match="also exported as"):
        _analyze(tmp_path, {"index.d.ts": "interface A {\n}\nexport { A, A as B };\n"})


def test_default_export_fails(tmp_path: Path):
    with pytest.raises(RollupInputError, match="default export"):
        _analyze(tmp_path, {"index.d.ts": "declare class Foo {\n}\nexport default Foo;\n"})


def test_entry_without_module_fails(tmp_path: Path):
    with pytest.raises(RollupInputError, match="Unable to find a root declaration"):
        _analyze(tmp_path, {"index.d.ts": "declare function f(): void;\n"})


def test_local_namespace_import_cannot_be_emitted(tmp_path: Path):
    generator = _analyze(
        tmp_path,
        {
            "index.d.ts": (
                "import * as inner from './inner';\n"
                "export declare function f(): inner.Options;\n"
            ),
            "inner.d.ts": "export interface Options {\n}\n",
        },
    )
    with pytest.raises(RollupInputError, match="namespace import"):
        generator.write_output(RollupKind.PUBLIC_RELEASE)


# --------------------------------------------------------------------------- #
# Files
# --------------------------------------------------------------------------- #
def test_write_typings_file_with_crlf(tmp_path: Path):
    generator = _analyze(tmp_path, {"index.d.ts": "export interface A {\n    x: number;\n}\n"})

    target = generator.write_typings_file(
        tmp_path / "dist" / "public.d.ts", RollupKind.PUBLIC_RELEASE, NewlineKind.CRLF
    )

    data = target.read_bytes()
    assert data == b"\r\nexport declare interface A {\r\n    x: number;\r\n}\r\n"
