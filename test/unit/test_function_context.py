from dogtrace.parsers.function_context import (
    extract_declaration_name,
    find_potential_reverts,
    find_requires,
    get_function_context,
)
from dogtrace.parsers.source_map import SourceText

FOO_SOURCE = """contract C {
    function foo() external {
        uint x = 1;
        require(x > 0);
    }

    function bar(uint a, uint b) public returns (uint) {
        return a / b;
    }
}
"""


def test_foo_context():
    context = get_function_context(FOO_SOURCE, 4)
    assert context.name == "foo"
    assert context.start_line == 2
    assert context.end_line == 5
    assert context.target_line == 4
    assert "require(x > 0);" in context.code
    assert context.code.splitlines()[0].strip() == "function foo() external {"


def test_accepts_source_text():
    context = get_function_context(SourceText(FOO_SOURCE), 8)
    assert context.name == "bar"
    assert (context.start_line, context.end_line) == (7, 9)


def test_declaration_line_itself():
    assert get_function_context(FOO_SOURCE, 2).name == "foo"


def test_no_enclosing_declaration():
    assert get_function_context(FOO_SOURCE, 1) is None
    assert get_function_context(FOO_SOURCE, 0) is None
    assert get_function_context(FOO_SOURCE, 999) is None


def test_unbalanced_braces_run_to_end_of_file():
    source = "contract C {\n    function f() public {\n        if (x) {\n"
    context = get_function_context(source, 3)
    assert context.name == "f"
    assert context.end_line == len(source.split("\n"))


def test_braces_in_comments_are_ignored():
    source = (
        "contract C {\n"
        "    function f() public { // }\n"
        "        x = 1;\n"
        "    }\n"
        "}\n"
    )
    context = get_function_context(source, 3)
    assert context.end_line == 4


def test_special_functions_and_modifiers():
    assert extract_declaration_name("    constructor(uint a) {") == "constructor"
    assert extract_declaration_name("    fallback() external payable {") == "fallback"
    assert extract_declaration_name("    receive() external payable {") == "receive"
    assert extract_declaration_name("    modifier onlyOwner() {") == "onlyOwner"
    assert extract_declaration_name("    uint256 public count;") is None
    assert extract_declaration_name("    // function ghost() public") is None


def test_modifier_context():
    source = (
        "contract C {\n"
        "    modifier onlyOwner() {\n"
        "        require(msg.sender == owner, \"not owner\");\n"
        "        _;\n"
        "    }\n"
        "}\n"
    )
    context = get_function_context(source, 3)
    assert context.name == "onlyOwner"
    assert (context.start_line, context.end_line) == (2, 5)


def test_find_potential_reverts():
    reverts = find_potential_reverts(FOO_SOURCE)
    kinds = {(r.line, r.kind) for r in reverts}
    assert (4, "require") in kinds
    assert (8, "division") in kinds
    by_line = {r.line: r for r in reverts}
    assert by_line[4].function_name == "foo"
    assert by_line[8].function_name == "bar"


def test_find_requires_skips_comments():
    source = "contract C {\n    // require(false);\n    function f() public {\n        require(a);\n    }\n}\n"
    requires = find_requires(source)
    assert [r.line for r in requires] == [4]
    assert requires[0].snippet == "require(a);"


INTERFACE_SOURCE = """interface IToken {
    function g() external;
}

contract Token {
    uint256 total;

    function mint(uint256 amount) external {
        require(amount > 0);
        total += amount;
    }
}
"""


def test_bodyless_declarations_are_not_enclosing():
    assert get_function_context(INTERFACE_SOURCE, 6) is None

    context = get_function_context(INTERFACE_SOURCE, 9)
    assert context.name == "mint"
    assert (context.start_line, context.end_line) == (8, 11)


def test_bodyless_declarations_do_not_own_reverts():
    (require,) = find_requires(INTERFACE_SOURCE)
    assert require.function_name == "mint"
