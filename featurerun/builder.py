"""Build a Go test runner executable that registers the tested package's contexts."""

from __future__ import annotations

import json
import os
import posixpath
import re
import shutil
import subprocess
import tempfile
import time
import unicodedata
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .goscan import ast_contexts

GODOG_IMPORT_PATH = "github.com/cucumber/godog"
DEPENDENCY_FILE_NAME = "godog_dependency_file_test.go"

_ILLEGAL_IMPORT_CHARS = '!"#$%&\'()*,:;<=>?[\\]^{|}`\uFFFD'

_LITERAL_OR_COMMENT = re.compile(
    r"(\"(?:\\.|[^\"\\\n])*\"|`[^`]*`|'(?:\\.|[^'\\\n])*')|//[^\n]*|/\*.*?\*/",
    re.DOTALL,
)
_PACKAGE_CLAUSE = re.compile(r"^\s*package\s+(\w+)")
_IMPORT_DECL = re.compile(
    r"^\s*import\s*(?:\((?P<group>.*?)\)|(?:[\w.]+\s+)?(?P<single>\"[^\"]*\"|`[^`]*`))",
    re.DOTALL | re.MULTILINE,
)
_IMPORT_PATH = re.compile(r"\"([^\"]*)\"|`([^`]*)`")
_IGNORE_CONSTRAINT = re.compile(r"^//\s*(?:go:build|\+build)\s+ignore\s*$", re.MULTILINE)


class BuildError(Exception):
    """Raised when the test runner cannot be built."""


@dataclass
class GoPackage:
    """What a directory of Go sources declares, as far as the builder needs."""

    dir: str
    name: str = ""
    import_path: str = "."
    root: str = ""
    imports: list[str] = field(default_factory=list)
    test_imports: list[str] = field(default_factory=list)
    xtest_imports: list[str] = field(default_factory=list)
    go_files: list[str] = field(default_factory=list)
    test_go_files: list[str] = field(default_factory=list)
    xtest_go_files: list[str] = field(default_factory=list)


@dataclass
class Contexts:
    """Context functions found in test files, by kind."""

    deprecated_feature_ctxs: list[str] = field(default_factory=list)
    test_suite_ctxs: list[str] = field(default_factory=list)
    scenario_ctxs: list[str] = field(default_factory=list)

    def validate(self) -> None:
        """Raise BuildError if any context function is not exported."""
        failed = [
            f"{ctx} - should be: {ctx[0].upper()}{ctx[1:]}"
            for ctx in (*self.deprecated_feature_ctxs, *self.test_suite_ctxs, *self.scenario_ctxs)
            if ctx[0].islower()
        ]
        if failed:
            raise BuildError("suite contexts must be exported:\n\t" + "\n\t".join(failed))


class _CommandFailed(Exception):
    def __init__(self, reason: str, output: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.output = output


def _text(data: object) -> str:
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data or ""


def _combined_output(args: Sequence[str], env: Optional[dict] = None) -> str:
    try:
        proc = subprocess.run(
            list(args), stdout=subprocess.PIPE, stderr=subprocess.STDOUT, env=env, check=False
        )
    except OSError as exc:
        raise _CommandFailed(str(exc), "") from exc
    output = _text(proc.stdout)
    if proc.returncode != 0:
        raise _CommandFailed(f"exit status {proc.returncode}", output)
    return output


def _gopaths() -> list[str]:
    gopath = os.environ.get("GOPATH") or os.path.join(os.path.expanduser("~"), "go")
    return [entry for entry in gopath.split(os.pathsep) if entry]


def make_import_valid(char: str) -> str:
    """Return ``char``, or ``_`` where it may not appear in an import path."""
    category = unicodedata.category(char)
    graphic = category[0] in "LMNPS" or category == "Zs"
    if not graphic or char.isspace() or char in _ILLEGAL_IMPORT_CHARS:
        return "_"
    return char


def normalise_local_import_path(directory: str) -> str:
    """Return the import path used for a package outside any GOPATH."""
    slashed = directory.replace(os.sep, "/")
    return posixpath.normpath("_/" + "".join(map(make_import_valid, slashed)))


def _strip_comments(source: str) -> str:
    return _LITERAL_OR_COMMENT.sub(lambda m: m.group(1) or " ", source)


def _file_imports(stripped: str) -> list[str]:
    paths: list[str] = []
    for decl in _IMPORT_DECL.finditer(stripped):
        body = decl.group("group") if decl.group("group") is not None else decl.group("single")
        paths.extend(a if a else b for a, b in _IMPORT_PATH.findall(body))
    return paths


def _scan_dir(directory: str) -> tuple[GoPackage, Optional[str]]:
    """Read the Go files of ``directory``; return the package and any error."""
    pkg = GoPackage(dir=directory)
    for gopath in _gopaths():
        src = os.path.join(gopath, "src")
        if directory.startswith(src + os.sep):
            pkg.root = gopath
            pkg.import_path = os.path.relpath(directory, src).replace(os.sep, "/")
            break

    if not os.path.isdir(directory):
        return pkg, f"cannot find package {directory!r}"

    imports: set[str] = set()
    test_imports: set[str] = set()
    xtest_imports: set[str] = set()
    xtest_name = ""
    for entry in sorted(Path(directory).iterdir()):
        if entry.suffix != ".go" or entry.name[0] in "_." or not entry.is_file():
            continue
        source = entry.read_text(encoding="utf-8", errors="replace")
        header = source.split("package", 1)[0]
        if _IGNORE_CONSTRAINT.search(header):
            continue
        stripped = _strip_comments(source)
        clause = _PACKAGE_CLAUSE.match(stripped)
        if clause is None:
            return pkg, f"{entry}: expected 'package' clause"
        file_pkg = clause.group(1)
        file_imports = _file_imports(stripped)
        if entry.name.endswith("_test.go") and file_pkg.endswith("_test"):
            pkg.xtest_go_files.append(str(entry))
            xtest_imports.update(file_imports)
            xtest_name = xtest_name or file_pkg[: -len("_test")]
            continue
        if entry.name.endswith("_test.go"):
            pkg.test_go_files.append(str(entry))
            test_imports.update(file_imports)
        else:
            pkg.go_files.append(str(entry))
            imports.update(file_imports)
        if not pkg.name:
            pkg.name = file_pkg
        elif pkg.name != file_pkg:
            return pkg, f"found packages {pkg.name} and {file_pkg} in {directory}"

    pkg.name = pkg.name or xtest_name
    pkg.imports = sorted(imports)
    pkg.test_imports = sorted(test_imports)
    pkg.xtest_imports = sorted(xtest_imports)
    if not (pkg.go_files or pkg.test_go_files or pkg.xtest_go_files):
        return pkg, f"no buildable Go source files in {directory}"
    return pkg, None


def import_package(directory: str) -> GoPackage:
    """Describe the Go package in ``directory``; the name is empty when there is none."""
    pkg, _ = _scan_dir(directory)
    if pkg.import_path == ".":
        pkg.import_path = normalise_local_import_path(directory)
    return pkg


def parse_import(raw_path: str, root_path: str) -> str:
    """Return the import path, asking the module system when outside GOPATH."""
    if root_path:
        return raw_path
    try:
        proc = subprocess.run(
            ["go", "list", "-m", "-json"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return raw_path
    try:
        mod, _ = json.JSONDecoder().raw_decode(_text(proc.stdout).lstrip())
    except ValueError:
        return raw_path
    if proc.returncode != 0 or not isinstance(mod, dict):
        return raw_path
    mod_dir = str(mod.get("Dir", ""))
    mod_path = str(mod.get("Path", ""))
    rest = raw_path.removeprefix(normalise_local_import_path(mod_dir))
    return mod_path + rest.replace(os.sep, "/")


def build_temp_file(pkg: Optional[GoPackage]) -> Optional[bytes]:
    """Return a source file importing the runtime library, or None if not needed."""
    name = ""
    if pkg is not None:
        name = pkg.name
        if GODOG_IMPORT_PATH in (*pkg.imports, *pkg.test_imports, *pkg.xtest_imports):
            return None
        if name == "godog" and parse_import(pkg.import_path, pkg.root) == GODOG_IMPORT_PATH:
            return None
    name = name or "main"
    source = (
        f"package {name}\n\n"
        f'import "{GODOG_IMPORT_PATH}"\n\n'
        "var _ = godog.Version\n"
    )
    return source.encode()


def _calls(alias: str, names: Iterable[str]) -> list[str]:
    return [f"\t\t\t{alias}.{name}(ctx)" for name in names]


def _render_runner(name: str, import_path: str, ctxs: Contexts, xctxs: Contexts) -> str:
    has_test = bool(ctxs.test_suite_ctxs or ctxs.scenario_ctxs)
    has_xtest = bool(xctxs.test_suite_ctxs or xctxs.scenario_ctxs)

    lines = ["package main", "", "import (", f'\t"{GODOG_IMPORT_PATH}"']
    if has_test:
        lines.append(f'\t_test "{import_path}"')
    if has_xtest:
        lines.append(f'\t_xtest "{import_path}_test"')
        lines.append('\t"testing/internal/testdeps"')
    lines += ['\t"os"', ")", ""]
    if has_xtest:
        lines += ["func init() {", f'\ttestdeps.ImportPath = "{import_path}"', "}", ""]
    lines += [
        "func main() {",
        "\tstatus := godog.TestSuite{",
        f'\t\tName: "{name}",',
        "\t\tTestSuiteInitializer: func (ctx *godog.TestSuiteContext) {",
        f'\t\t\tos.Setenv("GODOG_TESTED_PACKAGE", "{import_path}")',
        *_calls("_test", ctxs.test_suite_ctxs),
        *_calls("_xtest", xctxs.test_suite_ctxs),
        "\t\t},",
        "\t\tScenarioInitializer: func (ctx *godog.ScenarioContext) {",
        *_calls("_test", ctxs.scenario_ctxs),
        *_calls("_xtest", xctxs.scenario_ctxs),
        "\t\t},",
        "\t}.Run()",
        "",
        "\tos.Exit(status)",
        "}",
    ]
    return "\n".join(lines)


def build_test_main(pkg: Optional[GoPackage]) -> bytes:
    """Return the runner's main source, registering the package's contexts."""
    ctxs, xctxs = Contexts(), Contexts()
    name = "main"
    import_path = ""
    if pkg is not None:
        ctxs = process_package_test_files(pkg.test_go_files)
        xctxs = process_package_test_files(pkg.xtest_go_files)
        import_path = parse_import(pkg.import_path, pkg.root)
        name = pkg.name
    return _render_runner(name, import_path, ctxs, xctxs).encode()


def process_package_test_files(*args: Sequence[str]) -> Contexts:
    """Collect the context functions declared in each group of test files."""
    ctxs = Contexts()
    for pack in args:
        for test_file in pack:
            source = Path(test_file).read_text(encoding="utf-8", errors="replace")
            ctxs.test_suite_ctxs.extend(ast_contexts(source, "TestSuiteContext"))
            ctxs.scenario_ctxs.extend(ast_contexts(source, "ScenarioContext"))
    ctxs.validate()
    return ctxs


def find_tool_dir() -> str:
    """Return the directory holding the Go compiler and linker."""
    try:
        proc = subprocess.run(
            ["go", "env", "GOTOOLDIR"],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return os.path.normpath("")
    if proc.returncode != 0:
        return os.path.normpath("")
    return os.path.normpath(_text(proc.stdout).strip() or ".")


def maybe_vendored_godog() -> Optional[GoPackage]:
    """Return the runtime library vendored in or above the working directory, if any."""
    directory = os.path.abspath(".")
    vendored = os.path.join("vendor", *GODOG_IMPORT_PATH.split("/"))
    for gopath in _gopaths():
        src = os.path.join(gopath, "src")
        while directory.startswith(src) and directory != src:
            pkg, err = _scan_dir(os.path.join(directory, vendored))
            if err is not None:
                directory = os.path.dirname(directory)
                continue
            return pkg
    return None


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        pass


def build(bin_path: str) -> None:
    """Build the runner for the package in the working directory at ``bin_path``."""
    abs_dir = os.path.abspath(".")
    pkg = import_package(abs_dir)
    src = build_test_main(pkg)
    src_temp = build_temp_file(pkg)

    with ExitStack() as cleanup:
        if src_temp is not None:
            path_temp = os.path.join(abs_dir, DEPENDENCY_FILE_NAME)
            Path(path_temp).write_bytes(src_temp)
            cleanup.callback(_remove_quietly, path_temp)

        temp = os.path.join(tempfile.gettempdir(), f"temp-{time.time_ns()}.test")
        if os.environ.get("GO111MODULE") != "off":
            try:
                _combined_output(["go", "mod", "tidy"])
            except _CommandFailed as exc:
                raise BuildError(
                    f"failed to tidy modules in tested package: {abs_dir}, "
                    f"reason: {exc.reason}, output: {exc.output}"
                ) from exc
        try:
            test_output = _combined_output(["go", "test", "-c", "-work", "-o", temp])
        except _CommandFailed as exc:
            raise BuildError(
                f"failed to compile tested package: {abs_dir}, "
                f"reason: {exc.reason}, output: {exc.output}"
            ) from exc
        cleanup.callback(_remove_quietly, temp)

        workdir = next(
            (
                line[len("WORK="):]
                for line in test_output.strip().split("\n")
                if line.startswith("WORK=")
            ),
            "",
        )
        if not workdir:
            raise BuildError(f"expected WORK dir path to be present in output: {test_output}")
        if not os.path.exists(workdir):
            raise BuildError(f"expected WORK dir: {workdir} to be available")
        if not os.path.isdir(workdir):
            raise BuildError(f"expected WORK dir: {workdir} to be directory")
        testdir = os.path.join(workdir, "b001")
        cleanup.callback(shutil.rmtree, workdir, True)

        testmain = os.path.join(testdir, "_testmain.go")
        Path(testmain).write_bytes(src)

        vendored = maybe_vendored_godog()
        linker_cfg = os.path.join(testdir, "importcfg.link")
        compiler_cfg = linker_cfg
        if vendored is not None:
            data = Path(linker_cfg).read_bytes()
            data += f"importmap {GODOG_IMPORT_PATH}={vendored.import_path}\n".encode()
            compiler_cfg = os.path.join(testdir, "importcfg")
            Path(compiler_cfg).write_bytes(data)

        tool_dir = find_tool_dir()
        compiler = os.path.join(tool_dir, "compile")
        linker = os.path.join(tool_dir, "link")
        env = dict(os.environ)

        testmain_archive = os.path.join(testdir, "main.a")
        compile_args = [
            "-o", testmain_archive,
            "-importcfg", compiler_cfg,
            "-p", "main",
            "-complete",
            "-pack", testmain,
        ]
        try:
            _combined_output([compiler, *compile_args], env=env)
        except _CommandFailed as exc:
            raise BuildError(
                f"failed to compile testmain package: {exc.reason} - output: {exc.output}"
            ) from exc

        link_args = ["-o", bin_path, "-importcfg", linker_cfg, "-buildmode=exe", testmain_archive]
        try:
            _combined_output([linker, *link_args], env=env)
        except _CommandFailed as exc:
            command = linker + " '" + "' '".join(link_args) + "'"
            raise BuildError(
                "failed to link test executable:\n"
                f"\treason: {exc.output}\n"
                f"\tcommand: {command}"
            ) from exc