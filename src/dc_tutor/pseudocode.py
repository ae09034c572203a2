"""Heuristic pseudocode checks for divide-and-conquer answers.

This is pattern matching, not parsing. Each problem registers a validator
(``str -> ValidationResult``) and ``analyze_pseudocode`` combines it with the
generic structure and divide-and-conquer checks.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable

EMPTY_MESSAGE = "Please enter your pseudocode solution."
SUCCESS_MESSAGE = "Your pseudocode correctly implements the divide-and-conquer approach."
IMPROVE_MESSAGE = "Your pseudocode implementation needs some improvements."

DEFAULT_STRUCTURE = (
    "function divide_and_conquer(problem):\n"
    "  if base_case(problem):\n"
    "    return solve_directly(problem)\n"
    "  else:\n"
    "    divide problem into subproblems\n"
    "    recursively solve each subproblem\n"
    "    return combined results"
)

_FLAGS = re.IGNORECASE


@dataclass(slots=True)
class ValidationResult:
    valid: bool
    feedback: list[str] = field(default_factory=list)


Validator = Callable[[str], ValidationResult]


@dataclass(slots=True)
class StructureAnalysis:
    valid: bool
    has_function_def: bool
    has_control_structures: bool
    has_proper_indentation: bool
    has_return_statement: bool
    line_count: int


@dataclass(slots=True)
class PatternAnalysis:
    has_base_case_check: bool
    has_recursive_calls: bool
    has_divide_step: bool
    has_combine_step: bool

    @property
    def has_required_patterns(self) -> bool:
        return (
            self.has_base_case_check
            and (self.has_recursive_calls or self.has_divide_step)
            and self.has_combine_step
        )


@dataclass(slots=True)
class PseudocodeAnalysis:
    is_correct: bool
    message: str
    details: list[str] = field(default_factory=list)
    structure: StructureAnalysis | None = None
    patterns: PatternAnalysis | None = None
    specific: ValidationResult | None = None


@dataclass(slots=True)
class _Registration:
    validator: Validator
    expected_structure: str


_VALIDATORS: dict[str, _Registration] = {}


def register_validator(problem_id: str, expected_structure: str = DEFAULT_STRUCTURE) -> Callable[[Validator], Validator]:
    def decorator(func: Validator) -> Validator:
        _VALIDATORS[problem_id] = _Registration(func, expected_structure)
        return func

    return decorator


def _accept_all(_code: str) -> ValidationResult:
    return ValidationResult(valid=True)


def get_validator(problem_id: str) -> Validator:
    registration = _VALIDATORS.get(problem_id)
    return registration.validator if registration else _accept_all


def expected_structure(problem_id: str) -> str:
    registration = _VALIDATORS.get(problem_id)
    return registration.expected_structure if registration else DEFAULT_STRUCTURE


def registered_problems() -> list[str]:
    return sorted(_VALIDATORS)


def _has(pattern: str, code: str) -> bool:
    return re.search(pattern, code, _FLAGS) is not None


def _check_all(code: str, checks: list[tuple[str, str]]) -> ValidationResult:
    """Run (pattern, hint) pairs; every pattern must match."""
    feedback = [hint for pattern, hint in checks if not _has(pattern, code)]
    return ValidationResult(valid=not feedback, feedback=feedback)


def clean_pseudocode(code: str) -> str:
    """Drop comments and blank lines, keep indentation."""
    cleaned = re.sub(r"/\*.*?\*/", "", code, flags=re.DOTALL)
    cleaned = re.sub(r"//.*|#.*", "", cleaned)
    lines = [line.rstrip() for line in cleaned.split("\n")]
    return "\n".join(line for line in lines if line.strip())


def _check_indentation(lines: list[str]) -> bool:
    if len(lines) <= 1:
        return True
    levels: set[int] = set()
    previous = 0
    increased = False
    for line in lines:
        stripped = line.lstrip()
        if not stripped:
            continue
        indent = len(line) - len(stripped)
        if indent > previous:
            increased = True
        levels.add(indent)
        previous = indent
    return len(levels) >= 2 and increased


def analyze_structure(code: str) -> StructureAnalysis:
    lines = code.split("\n")
    non_empty = [line for line in lines if line.strip()]
    has_function_def = (
        _has(r"function\s+\w+\s*\(.*\)", code)
        or _has(r"procedure\s+\w+\s*\(.*\)", code)
        or _has(r"\w+\s*\(.*\):", code)
    )
    has_control = _has(r"if|else|while|for|return", code)
    return StructureAnalysis(
        valid=len(non_empty) >= 3 and has_control,
        has_function_def=has_function_def,
        has_control_structures=has_control,
        has_proper_indentation=_check_indentation(lines),
        has_return_statement=_has(r"return", code),
        line_count=len(non_empty),
    )


def _function_name(code: str) -> str:
    match = re.search(r"function\s+(\w+)|procedure\s+(\w+)|def\s+(\w+)|(\w+)\s*\(.*\):", code, _FLAGS)
    if match is None:
        return ""
    return next(group for group in match.groups() if group)


def analyze_patterns(code: str) -> PatternAnalysis:
    has_base_case = _has(
        r"if\s+.*\s*<=\s*1|if\s+.*\s*==\s*1|if\s+.*\s*===\s*1|if\s+.*\.length\s*<=\s*1", code
    ) or _has(r"if\s+.*empty|if\s+.*base case", code)

    name = _function_name(code)
    # the definition itself is one occurrence
    has_recursion = bool(name) and len(re.findall(rf"\b{re.escape(name)}\s*\(", code, _FLAGS)) >= 2

    has_divide = _has(r"mid|middle|split|half|divide", code) and _has(r"=", code)
    has_combine = _has(r"merge|combine|join|concat|max|return.*\+|return.*max", code)
    return PatternAnalysis(
        has_base_case_check=has_base_case,
        has_recursive_calls=has_recursion,
        has_divide_step=has_divide,
        has_combine_step=has_combine,
    )


def _build_details(
    structure: StructureAnalysis,
    patterns: PatternAnalysis,
    specific: ValidationResult,
    structure_hint: str,
) -> list[str]:
    details: list[str] = []
    if not structure.valid:
        if not structure.has_function_def:
            details.append("Your pseudocode should define a function with parameters.")
        if not structure.has_control_structures:
            details.append("Include control structures like if, else, loops, and return statements.")
        if not structure.has_proper_indentation:
            details.append("Use consistent indentation to show the structure of your algorithm.")
        if structure.line_count < 3:
            details.append(
                "Your solution seems too short. Divide-and-conquer algorithms typically require multiple steps."
            )

    if not patterns.has_required_patterns:
        if not patterns.has_base_case_check:
            details.append("Include a base case to handle the simplest version of the problem directly.")
        if not patterns.has_recursive_calls and not patterns.has_divide_step:
            details.append(
                "Your algorithm should divide the problem into smaller instances and solve them recursively."
            )
        if not patterns.has_combine_step:
            details.append(
                "Include a step to combine solutions from the subproblems into a solution for the original problem."
            )

    if not specific.valid:
        details.extend(specific.feedback)
        details.append(f"Remember that the pseudocode should follow this general structure: {structure_hint}")
    return details


def analyze_pseudocode(problem_id: str, pseudocode: str) -> PseudocodeAnalysis:
    if not pseudocode or not pseudocode.strip():
        return PseudocodeAnalysis(is_correct=False, message=EMPTY_MESSAGE)

    code = clean_pseudocode(pseudocode)
    structure = analyze_structure(code)
    patterns = analyze_patterns(code)
    specific = get_validator(problem_id)(code)

    if structure.valid and patterns.has_required_patterns and specific.valid:
        return PseudocodeAnalysis(
            is_correct=True,
            message=SUCCESS_MESSAGE,
            details=["Well done! Your solution demonstrates understanding of the algorithm."],
            structure=structure,
            patterns=patterns,
            specific=specific,
        )

    return PseudocodeAnalysis(
        is_correct=False,
        message=IMPROVE_MESSAGE,
        details=_build_details(structure, patterns, specific, expected_structure(problem_id)),
        structure=structure,
        patterns=patterns,
        specific=specific,
    )


_MIDPOINT = r"mid|middle|length\s*/\s*2|size\s*/\s*2"


@register_validator(
    "merge-sort",
    "function mergeSort(array):\n  if array.length <= 1:\n    return array\n  mid = array.length / 2\n"
    "  left = mergeSort(first half of array)\n  right = mergeSort(second half of array)\n"
    "  return merge(left, right)",
)
def validate_merge_sort(code: str) -> ValidationResult:
    return _check_all(code, [
        (r"merge\s*\(|function\s+merge|procedure\s+merge|def\s+merge|while.*left.*right|for.*left.*right",
         "Include a merge function or logic to combine the sorted subarrays."),
        (_MIDPOINT, "Divide the array into two halves at the midpoint."),
        (r"mergesort\s*\(.*left|mergesort\s*\(.*right|sort\s*\(.*left|sort\s*\(.*right",
         "Recursively sort both halves of the array."),
    ])


@register_validator(
    "binary-search",
    "function binarySearch(array, target):\n  left = 0\n  right = array.length - 1\n  while left <= right:\n"
    "    mid = (left + right) / 2\n    if array[mid] == target:\n      return mid\n"
    "    if array[mid] < target:\n      left = mid + 1\n    else:\n      right = mid - 1\n  return -1",
)
def validate_binary_search(code: str) -> ValidationResult:
    result = _check_all(code, [
        (r"mid|middle|start.*end|left.*right", "Calculate the middle element of the search range."),
        (r"[<>=]=?.*target|target.*[<>=]=?", "Compare the middle element with the target value."),
        (r"(low|left|start)\s*=\s*mid|(high|right|end)\s*=\s*mid",
         "Update the search bounds based on the comparison result."),
    ])
    if not _has(r"return", code):
        result.valid = False
    return result


@register_validator(
    "maximum-subarray",
    "function findMaxSubarray(array):\n  if array.length <= 1:\n    return array[0]\n  mid = array.length / 2\n"
    "  leftMax = findMaxSubarray(left half)\n  rightMax = findMaxSubarray(right half)\n"
    "  crossMax = findMaxCrossingSubarray(array, mid)\n  return max(leftMax, rightMax, crossMax)",
)
def validate_maximum_subarray(code: str) -> ValidationResult:
    return _check_all(code, [
        (_MIDPOINT, "Divide the array at the midpoint."),
        (r"cross|left.*right|max.*three",
         "Consider the three cases: maximum subarray in left half, right half, or crossing the midpoint."),
        (r"return\s+max|return.*Math\.max|max\s*\(", "Return the maximum of the three cases."),
    ])


@register_validator(
    "quick-sort",
    "function quickSort(array):\n  if array.length <= 1:\n    return array\n  pivot = selectPivot(array)\n"
    "  partition array around pivot\n  recursively sort left subarray\n  recursively sort right subarray\n"
    "  return combined result",
)
def validate_quick_sort(code: str) -> ValidationResult:
    return _check_all(code, [
        (r"pivot|partition", "Select a pivot element for partitioning."),
        (r"partition|rearrange|swap|[<>=]=?.*pivot|pivot.*[<>=]=?",
         "Rearrange elements around the pivot (elements less than pivot on left, greater on right)."),
        (r"quicksort.*left|quicksort.*right|sort.*left|sort.*right",
         "Recursively sort the subarrays on both sides of the pivot."),
    ])


@register_validator(
    "closest-pair",
    "function closestPair(points):\n  if points.length <= 3:\n    return bruteForceClosestPair(points)\n"
    "  sortPointsByX(points)\n  mid = points.length / 2\n  leftClosest = closestPair(left half points)\n"
    "  rightClosest = closestPair(right half points)\n  delta = min(leftClosest, rightClosest)\n"
    "  return min(delta, closestCrossingPair(points, mid, delta))",
)
def validate_closest_pair(code: str) -> ValidationResult:
    return _check_all(code, [
        (r"sort|x|y|coordinate", "Sort points by x or y coordinate."),
        (_MIDPOINT, "Divide the points into two sets around the midpoint."),
        (r"distance|dist|sqrt|square|pow", "Calculate distances between points."),
        (r"strip|band|cross|boundary", "Handle the case where the closest pair crosses the dividing line."),
    ])


@register_validator(
    "matrix-multiplication",
    "function strassenMultiply(A, B):\n  if matrices are small:\n    return regular multiplication\n"
    "  divide A and B into 4 submatrices each\n  compute 7 products using Strassen's formulas\n"
    "  compute the 4 submatrices of the result using the products\n  combine submatrices and return the result",
)
def validate_matrix_multiplication(code: str) -> ValidationResult:
    return _check_all(code, [
        (r"submatrix|partition|divide|block|quadrant", "Divide matrices into submatrices or blocks."),
        (r"p1|p2|p3|p4|p5|p6|p7|seven|7.*multipl",
         "Use Strassen's approach with 7 matrix multiplications instead of 8."),
        (r"c11|c12|c21|c22|combine|result", "Combine the results to form the product matrix."),
    ])


__all__ = [
    "DEFAULT_STRUCTURE",
    "EMPTY_MESSAGE",
    "PatternAnalysis",
    "PseudocodeAnalysis",
    "StructureAnalysis",
    "ValidationResult",
    "Validator",
    "analyze_patterns",
    "analyze_pseudocode",
    "analyze_structure",
    "clean_pseudocode",
    "expected_structure",
    "get_validator",
    "register_validator",
    "registered_problems",
]
