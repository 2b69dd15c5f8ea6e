"""Checks emitted files before they are handed to the writer."""

import ast

import yaml

TEST_FILE_SUFFIX = ".spec.py"
YAML_SUFFIXES = (".yaml", ".yml")


def validate_files(files: dict[str, str]) -> dict[str, str]:
    """Parse every Python and YAML file; test modules must define a test function.

    Returns {file_name: error_message} for the files that fail. Other file
    types and empty Python files are not checked.
    """
    errors = {}
    for file_name, content in files.items():
        if file_name.endswith(".py"):
            error = _python_error(file_name, content)
        elif file_name.endswith(YAML_SUFFIXES):
            error = _yaml_error(content)
        else:
            continue
        if error:
            errors[file_name] = error
    return errors


def _python_error(file_name: str, content: str) -> str:
    if not content.strip():
        return ""
    try:
        tree = ast.parse(content, filename=file_name)
    except SyntaxError as e:
        return f"SyntaxError: {e.msg} (line {e.lineno})"
    is_test_module = file_name.endswith(TEST_FILE_SUFFIX)
    if is_test_module and not any(isinstance(node, ast.FunctionDef) and node.name.startswith("test_") for node in tree.body):
        return "No test functions found"
    return ""


def _yaml_error(content: str) -> str:
    try:
        yaml.safe_load(content)
    except yaml.YAMLError as e:
        return f"YAMLError: {e}"
    return ""
