from __future__ import annotations

import pytest

APP_TS_DIFF = "\n".join(
    [
        "diff --git a/src/app.ts b/src/app.ts",
        "index 83db48f..bf269f4 100644",
        "--- a/src/app.ts",
        "+++ b/src/app.ts",
        "@@ -8,3 +8,4 @@ export function run() {",
        "   const a = 1;",
        "-  return a;",
        "+  const b = 2;",
        "+  return a + b;",
        " }",
    ]
)

README_DIFF = "\n".join(
    [
        "diff --git a/README.md b/README.md",
        "index 1111111..2222222 100644",
        "--- a/README.md",
        "+++ b/README.md",
        "@@ -1 +1 @@",
        "-# Old",
        "+# New",
    ]
)

DELETED_DIFF = "\n".join(
    [
        "diff --git a/src/old.ts b/src/old.ts",
        "deleted file mode 100644",
        "index 3333333..0000000",
        "--- a/src/old.ts",
        "+++ /dev/null",
        "@@ -1,2 +0,0 @@",
        "-export const x = 1;",
        "-export const y = 2;",
    ]
)


@pytest.fixture
def app_ts_diff() -> str:
    return APP_TS_DIFF + "\n"


@pytest.fixture
def multi_file_diff() -> str:
    return "\n".join([APP_TS_DIFF, README_DIFF, DELETED_DIFF]) + "\n"
