import os
import subprocess
from unittest import mock

import pytest

from featurerun.builder import (
    DEPENDENCY_FILE_NAME,
    GODOG_IMPORT_PATH,
    BuildError,
    Contexts,
    GoPackage,
    build,
    build_temp_file,
    build_test_main,
    find_tool_dir,
    import_package,
    make_import_valid,
    maybe_vendored_godog,
    normalise_local_import_path,
    parse_import,
    process_package_test_files,
)

SCENARIO_TEST_FILE = """package app

import (
	"fmt"

	"github.com/cucumber/godog"
)

func thereAreGodogs(available int) error {
	return fmt.Errorf("%d", available)
}

func InitializeScenario(ctx *godog.ScenarioContext) {
	ctx.Step("^there are (\\\\d+) godogs$", thereAreGodogs)
}

func InitializeTestSuite(ctx *godog.TestSuiteContext) {
}
"""

XTEST_FILE = """package app_test

import "github.com/cucumber/godog"

func InitializeScenario(ctx *godog.ScenarioContext) {}
"""

MAIN_FILE = """package app

import "fmt"

var Godogs int

func main() { fmt.Println(Godogs) }
"""


def _completed(args, returncode, stdout=b""):
    return subprocess.CompletedProcess(args, returncode, stdout=stdout)


@pytest.mark.parametrize(
    "char, expected",
    [("a", "a"), ("/", "/"), ("é", "é"), (" ", "_"), ("!", "_"), ("\x00", "_"), ("\uFFFD", "_")],
)
def test_make_import_valid(char, expected):
    assert make_import_valid(char) == expected


def test_normalise_local_import_path():
    assert normalise_local_import_path("/home/user/pkg") == "_/home/user/pkg"
    assert normalise_local_import_path("/tmp/my pkg") == "_/tmp/my_pkg"


def test_contexts_validate_rejects_unexported():
    ctxs = Contexts(scenario_ctxs=["InitializeScenario", "initializeScenario"])
    with pytest.raises(BuildError) as info:
        ctxs.validate()
    assert "initializeScenario - should be: InitializeScenario" in str(info.value)
    assert "InitializeScenario -" not in str(info.value)


def test_process_package_test_files_collects_contexts(tmp_path):
    test_file = tmp_path / "app_test.go"
    test_file.write_text(SCENARIO_TEST_FILE)
    xtest_file = tmp_path / "x_test.go"
    xtest_file.write_text(XTEST_FILE)
    ctxs = process_package_test_files([str(test_file)], [str(xtest_file)])
    assert ctxs.scenario_ctxs == ["InitializeScenario", "InitializeScenario"]
    assert ctxs.test_suite_ctxs == ["InitializeTestSuite"]


def test_process_package_test_files_rejects_unexported(tmp_path):
    test_file = tmp_path / "app_test.go"
    test_file.write_text(
        "package app\n\nfunc initializeScenario(ctx *godog.ScenarioContext) {}\n"
    )
    with pytest.raises(BuildError):
        process_package_test_files([str(test_file)])


def test_build_temp_file_without_package_uses_main():
    data = build_temp_file(None)
    assert data.startswith(b"package main\n")
    assert f'import "{GODOG_IMPORT_PATH}"'.encode() in data
    assert b"var _ = godog.Version" in data


def test_build_temp_file_uses_package_name():
    pkg = GoPackage(dir="/x", name="lib", import_path="lib", root="/gopath")
    assert build_temp_file(pkg).startswith(b"package lib\n")


def test_build_temp_file_not_needed_when_imported():
    pkg = GoPackage(dir="/x", name="lib", root="/gopath", test_imports=[GODOG_IMPORT_PATH])
    assert build_temp_file(pkg) is None


def test_build_temp_file_not_needed_for_the_library_itself():
    pkg = GoPackage(dir="/x", name="godog", import_path=GODOG_IMPORT_PATH, root="/gopath")
    assert build_temp_file(pkg) is None


def test_build_test_main_without_package():
    source = build_test_main(None).decode()
    assert source.startswith("package main\n")
    assert 'Name: "main"' in source
    assert "_test" not in source


def test_build_test_main_registers_contexts(tmp_path):
    test_file = tmp_path / "app_test.go"
    test_file.write_text(SCENARIO_TEST_FILE)
    xtest_file = tmp_path / "x_test.go"
    xtest_file.write_text(XTEST_FILE)
    pkg = GoPackage(
        dir=str(tmp_path),
        name="app",
        import_path="example/app",
        root="/gopath",
        test_go_files=[str(test_file)],
        xtest_go_files=[str(xtest_file)],
    )
    source = build_test_main(pkg).decode()
    assert '_test "example/app"' in source
    assert '_xtest "example/app_test"' in source
    assert '"testing/internal/testdeps"' in source
    assert 'testdeps.ImportPath = "example/app"' in source
    assert "_test.InitializeScenario(ctx)" in source
    assert "_test.InitializeTestSuite(ctx)" in source
    assert "_xtest.InitializeScenario(ctx)" in source
    assert 'os.Setenv("GODOG_TESTED_PACKAGE", "example/app")' in source


def test_import_package_outside_gopath(tmp_path, monkeypatch):
    monkeypatch.setenv("GOPATH", str(tmp_path / "gopath"))
    pkg_dir = tmp_path / "app"
    pkg_dir.mkdir()
    (pkg_dir / "app.go").write_text(MAIN_FILE)
    (pkg_dir / "app_test.go").write_text(SCENARIO_TEST_FILE)
    (pkg_dir / "x_test.go").write_text(XTEST_FILE)
    (pkg_dir / "_skip.go").write_text("package other\n")
    pkg = import_package(str(pkg_dir))
    assert pkg.name == "app"
    assert pkg.root == ""
    assert pkg.import_path == normalise_local_import_path(str(pkg_dir))
    assert pkg.go_files == [str(pkg_dir / "app.go")]
    assert pkg.test_go_files == [str(pkg_dir / "app_test.go")]
    assert pkg.xtest_go_files == [str(pkg_dir / "x_test.go")]
    assert pkg.imports == ["fmt"]
    assert GODOG_IMPORT_PATH in pkg.test_imports
    assert pkg.xtest_imports == [GODOG_IMPORT_PATH]


def test_import_package_inside_gopath(tmp_path, monkeypatch):
    gopath = tmp_path / "gopath"
    pkg_dir = gopath / "src" / "godogs"
    pkg_dir.mkdir(parents=True)
    (pkg_dir / "godogs.go").write_text("package godogs\n")
    monkeypatch.setenv("GOPATH", str(gopath))
    pkg = import_package(str(pkg_dir))
    assert pkg.name == "godogs"
    assert pkg.root == str(gopath)
    assert pkg.import_path == "godogs"


def test_import_package_of_empty_directory(tmp_path, monkeypatch):
    monkeypatch.setenv("GOPATH", str(tmp_path / "gopath"))
    pkg = import_package(str(tmp_path))
    assert pkg.name == ""
    assert pkg.go_files == []


def test_parse_import_with_root_keeps_raw_path():
    assert parse_import("godogs/sub", "/gopath") == "godogs/sub"


def test_parse_import_queries_module():
    raw = normalise_local_import_path("/work/mod") + "/sub"
    reply = _completed([], 0, b'{"Dir": "/work/mod", "Path": "example.com/mod"}\n')
    with mock.patch("subprocess.run", return_value=reply):
        assert parse_import(raw, "") == "example.com/mod/sub"


def test_parse_import_falls_back_on_failure():
    with mock.patch("subprocess.run", return_value=_completed([], 1, b"")):
        assert parse_import("_/some/dir", "") == "_/some/dir"
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("go")):
        assert parse_import("_/some/dir", "") == "_/some/dir"


def test_find_tool_dir_uses_go_env():
    reply = _completed([], 0, b"/opt/go/pkg/tool/linux_amd64\n")
    with mock.patch("subprocess.run", return_value=reply):
        assert find_tool_dir() == os.path.normpath("/opt/go/pkg/tool/linux_amd64")


def test_find_tool_dir_without_go():
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("go")):
        assert find_tool_dir() == "."


def test_maybe_vendored_godog_finds_vendor_directory(tmp_path, monkeypatch):
    gopath = (tmp_path / "gp").resolve()
    vendored = gopath / "src" / "app" / "vendor" / "github.com" / "cucumber" / "godog"
    vendored.mkdir(parents=True)
    (vendored / "godog.go").write_text("package godog\n")
    work = gopath / "src" / "app" / "sub"
    work.mkdir()
    monkeypatch.setenv("GOPATH", str(gopath))
    monkeypatch.chdir(work)
    pkg = maybe_vendored_godog()
    assert pkg.name == "godog"
    assert pkg.import_path == "app/vendor/" + GODOG_IMPORT_PATH


def test_maybe_vendored_godog_outside_gopath(tmp_path, monkeypatch):
    monkeypatch.setenv("GOPATH", str(tmp_path / "gp"))
    work = tmp_path / "elsewhere"
    work.mkdir()
    monkeypatch.chdir(work)
    assert maybe_vendored_godog() is None


def test_build_reports_tidy_failure_and_cleans_up(tmp_path, monkeypatch):
    monkeypatch.setenv("GOPATH", str(tmp_path / "gp"))
    monkeypatch.delenv("GO111MODULE", raising=False)
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    dependency = work / DEPENDENCY_FILE_NAME
    seen = {}

    def fake_run(args, **kwargs):
        if args[:2] == ["go", "mod"]:
            seen["dependency"] = dependency.exists()
            return _completed(args, 1, b"tidy broke")
        return _completed(args, 1, b"")

    with mock.patch("subprocess.run", side_effect=fake_run):
        with pytest.raises(BuildError) as info:
            build(str(work / "runner"))
    assert "failed to tidy modules in tested package" in str(info.value)
    assert "tidy broke" in str(info.value)
    assert seen["dependency"] is True
    assert not dependency.exists()


def test_build_requires_work_directory_in_output(tmp_path, monkeypatch):
    monkeypatch.setenv("GOPATH", str(tmp_path / "gp"))
    monkeypatch.setenv("GO111MODULE", "off")
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    calls = []

    def fake_run(args, **kwargs):
        calls.append(args[:2])
        if args[:2] == ["go", "test"]:
            return _completed(args, 0, b"compiled fine\n")
        return _completed(args, 1, b"")

    with mock.patch("subprocess.run", side_effect=fake_run):
        with pytest.raises(BuildError) as info:
            build(str(work / "runner"))
    assert "expected WORK dir path to be present in output" in str(info.value)
    assert ["go", "mod"] not in calls
    assert not (work / DEPENDENCY_FILE_NAME).exists()