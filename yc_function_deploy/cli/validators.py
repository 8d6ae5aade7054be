"""Input validation for CLI arguments."""
import re
import sys

# Yandex Cloud resource names: lowercase letters, digits and hyphens
FUNCTION_NAME_PATTERN = r'^[a-z]([-a-z0-9]{0,61}[a-z0-9])?$'


def validate_function_name(name: str) -> None:
    """
    Validate function name matches Yandex Cloud naming rules.

    Args:
        name: Function name to validate

    Raises:
        SystemExit with code 2 if validation fails
    """
    if re.match(FUNCTION_NAME_PATTERN, name):
        return

    print(f"Error: Invalid function name '{name}'", file=sys.stderr)
    print("\nFunction names must:", file=sys.stderr)
    print("  - start with a lowercase letter", file=sys.stderr)
    print("  - contain only lowercase letters, digits and hyphens (-)", file=sys.stderr)
    print("  - not end with a hyphen and be at most 63 characters long", file=sys.stderr)
    print("\nExamples of valid names:", file=sys.stderr)
    print("  ✓ my-function", file=sys.stderr)
    print("  ✓ api-v2", file=sys.stderr)
    print("\nExamples of invalid names:", file=sys.stderr)
    print("  ✗ My_Function (uppercase, underscore)", file=sys.stderr)
    print("  ✗ 2fast (starts with a digit)", file=sys.stderr)
    sys.exit(2)


def validate_concurrency(value: int) -> None:
    """Worker pool width must be positive; exits with code 2 otherwise."""
    if value < 1:
        print(f"Error: Concurrency must be at least 1, got {value}", file=sys.stderr)
        sys.exit(2)
