# workflows/common_wheels.py
# Test installation of common wheel files with a freshly built pixi binary.
from __future__ import annotations

from wheelci.dsl import always, contains, not_, sh, uses, wf
from wheelci.model import Workflow

WINDOWS = contains("arch", "windows")

TEST_COMMAND = (
    "${TARGET_RELEASE}/pixi run --locked test-common-wheels-ci "
    "--pixi-exec ${TARGET_RELEASE}/pixi"
)

WINDOWS_SUMMARY = (
    "$resolvedPath = Resolve-Path $env:SUMMARY_FILE\n"
    "Get-Content $resolvedPath | Out-File -Append -FilePath $env:GITHUB_STEP_SUMMARY"
)


def workflow() -> Workflow:
    return wf(
        "Test common wheel files for installation with pixi",
        uses("Checkout repo", "checkout", {"ref": "${sha}"}),
        sh(
            "Create Dev Drive using ReFS",
            "${workspace}/.github/workflows/setup-dev-drive.ps1",
            shell="pwsh",
            when=WINDOWS,
        ),
        uses(
            "Copy Git Repo to Dev Drive",
            "copy-tree",
            {"source": "${workspace}", "destination": "${PIXI_WORKSPACE}"},
            when=WINDOWS,
        ),
        uses(
            "Download binary from build",
            "download-artifact",
            {"name": "${binary_artifact}", "path": "${TARGET_RELEASE}"},
        ),
        uses("Prepare binary", "chmod", {"path": "${TARGET_RELEASE}"}, when=not_(WINDOWS)),
        sh("Test common wheels", TEST_COMMAND, verdict=True),
        sh(
            "Write .summary.md to Github Summary",
            'cat "${SUMMARY_FILE}" >> "${GITHUB_STEP_SUMMARY}"',
            shell="bash",
            when=not_(WINDOWS) & always(),
        ),
        sh(
            "Write .summary.md to GitHub Summary (Windows)",
            WINDOWS_SUMMARY,
            shell="pwsh",
            when=WINDOWS & always(),
        ),
        uses(
            "Upload Logs",
            "upload-artifact",
            {"name": "${logs_artifact}", "path": "${LOGS_DIR}", "include_hidden_files": True},
            when=always(),
        ),
        timeout_minutes=15,
    )
