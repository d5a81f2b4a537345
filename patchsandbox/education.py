"""
Educational content: plain-language explanations, fixes and worked examples
for every violation type the detector can raise.

Everything here is a table lookup. The tables are keyed by ViolationType and
cover every member of the enum, so a new violation kind shows up as a
KeyError in the test-suite rather than as a silent generic message.
"""
import logging
from types import MappingProxyType

from patchsandbox.schemas import (
    CodeExample,
    EducationalContent,
    SecurityViolation,
    Severity,
    ViolationType,
)

logger = logging.getLogger(__name__)

V = ViolationType

# ── Per-type lookups ──────────────────────────────────────────────────────────

LABELS = MappingProxyType({
    V.CODE_INJECTION:      "Code injection vulnerability",
    V.UNSAFE_EVAL:         "Unsafe eval() usage",
    V.XSS:                 "Cross-site scripting vulnerability",
    V.PROTOTYPE_POLLUTION: "Prototype pollution vulnerability",
    V.DANGEROUS_API:       "Dangerous API usage",
    V.FILESYSTEM_ACCESS:   "File system access",
    V.NETWORK_ACCESS:      "Network access",
    V.PROCESS_ACCESS:      "Process access",
    V.GLOBAL_ACCESS:       "Global object access",
    V.UNSAFE_REGEX:        "Unsafe regular expression",
    V.BUFFER_OVERFLOW:     "Buffer overflow risk",
    V.MEMORY_LEAK:         "Memory leak risk",
    V.INFINITE_LOOP:       "Infinite loop risk",
    V.CONTEXTUAL_RISK:     "Scenario-specific risk",
})

EXPLANATIONS = MappingProxyType({
    V.CODE_INJECTION:      "Code injection occurs when untrusted input is executed as code, allowing attackers to run arbitrary commands.",
    V.UNSAFE_EVAL:         "The eval() function executes strings as code, which can be exploited if the input contains malicious code.",
    V.XSS:                 "Cross-site scripting allows attackers to inject malicious scripts into web pages viewed by other users.",
    V.PROTOTYPE_POLLUTION: "Prototype pollution modifies Object.prototype, affecting all objects and potentially leading to security vulnerabilities.",
    V.DANGEROUS_API:       "Certain APIs can be dangerous when used improperly, potentially exposing sensitive information or system access.",
    V.FILESYSTEM_ACCESS:   "File system access can be dangerous in web environments and should be carefully controlled.",
    V.NETWORK_ACCESS:      "Network requests can expose sensitive data or be used for malicious purposes if not properly validated.",
    V.PROCESS_ACCESS:      "Process and environment access can let attackers run system commands or read secrets such as API keys.",
    V.GLOBAL_ACCESS:       "Accessing global objects can lead to security vulnerabilities and should be avoided in sandboxed environments.",
    V.UNSAFE_REGEX:        "Certain regex patterns can cause catastrophic backtracking, leading to denial of service attacks.",
    V.BUFFER_OVERFLOW:     "Buffer overflows can lead to memory corruption and potential code execution vulnerabilities.",
    V.MEMORY_LEAK:         "Memory leaks can cause performance degradation and potential denial of service.",
    V.INFINITE_LOOP:       "Infinite loops can cause the application to hang and consume excessive resources.",
    V.CONTEXTUAL_RISK:     "This pattern is risky in the context of the problem you are fixing.",
})

FIXES = MappingProxyType({
    V.CODE_INJECTION:      "Use safe alternatives like JSON.parse() or a lookup table of predefined functions instead of dynamic code execution.",
    V.UNSAFE_EVAL:         "Replace eval() with JSON.parse() for data parsing, or dispatch through a lookup table of allowed operations.",
    V.XSS:                 "Use textContent instead of innerHTML, or sanitize HTML input with a trusted library.",
    V.PROTOTYPE_POLLUTION: "Use Object.create(null) for objects or validate property names before assignment.",
    V.DANGEROUS_API:       "Use safer alternatives or implement proper input validation and access controls.",
    V.FILESYSTEM_ACCESS:   "Remove file system operations or use secure, sandboxed alternatives.",
    V.NETWORK_ACCESS:      "Validate URLs, implement CORS policies, and use secure communication protocols.",
    V.PROCESS_ACCESS:      "Remove process access and pass configuration in explicitly instead of reading the environment.",
    V.GLOBAL_ACCESS:       "Use local variables or pass required values as parameters instead of accessing globals.",
    V.UNSAFE_REGEX:        "Simplify the regex pattern or use string methods for simple matching.",
    V.BUFFER_OVERFLOW:     "Implement proper bounds checking and use safe buffer operations.",
    V.MEMORY_LEAK:         "Ensure proper cleanup of event listeners, timers, and references.",
    V.INFINITE_LOOP:       "Add proper exit conditions and consider using iterative approaches with limits.",
    V.CONTEXTUAL_RISK:     "Review the code in the context of the specific vulnerability type and implement appropriate safeguards.",
})

LEARN_MORE = MappingProxyType({
    V.CODE_INJECTION:      "https://owasp.org/www-community/attacks/Code_Injection",
    V.UNSAFE_EVAL:         "https://developer.mozilla.org/en-US/docs/Web/JavaScript/Reference/Global_Objects/eval#never_use_eval!",
    V.XSS:                 "https://owasp.org/www-community/attacks/xss/",
    V.PROTOTYPE_POLLUTION: "https://portswigger.net/web-security/prototype-pollution",
    V.DANGEROUS_API:       "https://owasp.org/www-project-api-security/",
    V.FILESYSTEM_ACCESS:   "https://developer.mozilla.org/en-US/docs/Web/Security",
    V.NETWORK_ACCESS:      "https://developer.mozilla.org/en-US/docs/Web/Security/Same-origin_policy",
    V.PROCESS_ACCESS:      "https://nodejs.org/en/docs/guides/security/",
    V.GLOBAL_ACCESS:       "https://developer.mozilla.org/en-US/docs/Web/Security",
    V.UNSAFE_REGEX:        "https://owasp.org/www-community/attacks/Regular_expression_Denial_of_Service_-_ReDoS",
    V.BUFFER_OVERFLOW:     "https://owasp.org/www-community/vulnerabilities/Buffer_Overflow",
    V.MEMORY_LEAK:         "https://developer.mozilla.org/en-US/docs/Web/JavaScript/Memory_Management",
    V.INFINITE_LOOP:       "https://developer.mozilla.org/en-US/docs/Web/JavaScript/Guide/Loops_and_iteration",
    V.CONTEXTUAL_RISK:     None,
})


def describe(violation_type: ViolationType, count: int) -> str:
    plural = "s" if count > 1 else ""
    return f"{LABELS[violation_type]} detected ({count} instance{plural})"


def explain(violation_type: ViolationType) -> str:
    return EXPLANATIONS[violation_type]


def suggest_fix(violation_type: ViolationType) -> str:
    return FIXES[violation_type]


def learn_more_url(violation_type: ViolationType) -> str | None:
    return LEARN_MORE[violation_type]


# ── Scenario-specific wording ─────────────────────────────────────────────────

CONTEXTUAL_EXPLANATIONS = MappingProxyType({
    "prompt-injection": 'In the context of prompt injection vulnerabilities, the pattern "{match}" could allow attackers to manipulate input processing and inject malicious content.',
    "data-leak":        'In the context of data leak vulnerabilities, the pattern "{match}" could expose sensitive information through logging or output mechanisms.',
    "memory-leak":      'In the context of memory leak vulnerabilities, the pattern "{match}" could create references that are not properly cleaned up, leading to memory accumulation.',
})

CONTEXTUAL_FIXES = MappingProxyType({
    "prompt-injection": "Implement proper input sanitization and validation before processing user input.",
    "data-leak":        "Remove or sanitize sensitive data from logging statements and ensure proper data handling.",
    "memory-leak":      "Ensure proper cleanup of event listeners, timers, and object references.",
})


def explain_contextual(scenario_kind: str, match: str) -> str:
    template = CONTEXTUAL_EXPLANATIONS.get(
        scenario_kind,
        'The pattern "{match}" poses a contextual security risk for {scenario} scenarios.',
    )
    return template.format(match=match, scenario=scenario_kind)


def suggest_contextual_fix(scenario_kind: str) -> str:
    return CONTEXTUAL_FIXES.get(scenario_kind, FIXES[V.CONTEXTUAL_RISK])


# ── Long-form lessons ─────────────────────────────────────────────────────────

TEMPLATES = MappingProxyType({
    V.UNSAFE_EVAL: EducationalContent(
        title="Understanding eval() Security Risks",
        explanation=(
            "The eval() function executes strings as code, which creates serious security "
            "vulnerabilities when the input is not trusted. Attackers can inject malicious code "
            "that will be executed with the same privileges as your application."
        ),
        examples=[
            CodeExample(
                title="Unsafe eval() usage",
                unsafe="const userInput = getUserInput();\neval(userInput); // Dangerous!",
                safe="const userInput = getUserInput();\nconst data = JSON.parse(userInput); // Safe parsing",
                explanation="Use JSON.parse() for data parsing instead of eval() to prevent code injection.",
            ),
            CodeExample(
                title="Dynamic property access",
                unsafe="eval(`obj.${propertyName}`);",
                safe="obj[propertyName];",
                explanation="Use bracket notation for dynamic property access instead of eval().",
            ),
        ],
        best_practices=[
            "Never use eval() with untrusted input",
            "Use JSON.parse() for parsing JSON data",
            "Use bracket notation for dynamic property access",
            "Validate and sanitize all user input",
            "Consider using a safe expression evaluator library if needed",
        ],
        common_mistakes=[
            "Using eval() to parse JSON data",
            "Using eval() for dynamic property access",
            "Trusting user input without validation",
            "Using eval() in template systems",
        ],
        further_reading=[
            "MDN: eval() - Never use eval()!",
            "OWASP: Code Injection Prevention",
            "JavaScript Security Best Practices",
        ],
    ),
    V.XSS: EducationalContent(
        title="Preventing Cross-Site Scripting (XSS)",
        explanation=(
            "Cross-site scripting occurs when untrusted data is inserted into web pages without "
            "proper validation or escaping. This allows attackers to inject malicious scripts "
            "that execute in users' browsers."
        ),
        examples=[
            CodeExample(
                title="Unsafe HTML insertion",
                unsafe="element.innerHTML = userInput; // Vulnerable to XSS",
                safe="element.textContent = userInput; // Safe text insertion",
                explanation="Use textContent to insert text safely, or sanitize HTML with a trusted library.",
            ),
            CodeExample(
                title="Safe HTML templating",
                unsafe="html = `<div>${userInput}</div>`; // Dangerous",
                safe="html = `<div>${escapeHtml(userInput)}</div>`; // Safe with escaping",
                explanation="Always escape user input when inserting into HTML templates.",
            ),
        ],
        best_practices=[
            "Use textContent instead of innerHTML for text",
            "Sanitize HTML input with trusted libraries",
            "Implement Content Security Policy (CSP)",
            "Validate and escape all user input",
            "Use template engines with auto-escaping",
        ],
        common_mistakes=[
            "Using innerHTML with user input",
            "Not escaping data in templates",
            "Trusting client-side validation only",
            "Not implementing CSP headers",
        ],
        further_reading=[
            "OWASP: Cross-site Scripting Prevention",
            "MDN: Content Security Policy",
            "Web Security Guidelines",
        ],
    ),
    V.CODE_INJECTION: EducationalContent(
        title="Understanding Code Injection Vulnerabilities",
        explanation=(
            "Code injection occurs when an application executes untrusted input as code. This can "
            "happen through eval(), the Function constructor or template engines, allowing "
            "attackers to execute arbitrary code."
        ),
        examples=[
            CodeExample(
                title="Function constructor injection",
                unsafe="const fn = new Function(userInput); // Dangerous",
                safe="const fn = predefinedFunctions[userInput]; // Safe lookup",
                explanation="Use predefined function lookups instead of dynamic function creation.",
            ),
        ],
        best_practices=[
            "Never execute user input as code",
            "Use whitelisting for dynamic operations",
            "Implement proper input validation",
            "Use safe templating engines",
            "Apply principle of least privilege",
        ],
        common_mistakes=[
            "Using Function constructor with user input",
            "Dynamic code generation without validation",
            "Trusting serialized data",
            "Not sanitizing template inputs",
        ],
        further_reading=[
            "OWASP: Code Injection",
            "Secure Coding Practices",
            "Input Validation Guidelines",
        ],
    ),
    V.PROTOTYPE_POLLUTION: EducationalContent(
        title="Preventing Prototype Pollution",
        explanation=(
            "Prototype pollution occurs when an attacker can modify Object.prototype or other "
            "built-in prototypes, affecting all objects in the application and potentially "
            "leading to security vulnerabilities."
        ),
        examples=[
            CodeExample(
                title="Unsafe prototype modification",
                unsafe="obj.__proto__.isAdmin = true; // Dangerous",
                safe="obj.isAdmin = true; // Safe property assignment",
                explanation="Avoid modifying prototypes directly, especially with user-controlled data.",
            ),
        ],
        best_practices=[
            "Use Object.create(null) for data objects",
            "Validate property names before assignment",
            "Use Map for key-value storage",
            "Freeze important prototypes",
            "Implement proper input validation",
        ],
        common_mistakes=[
            "Allowing __proto__ in user input",
            "Not validating object keys",
            "Using merge functions without protection",
            "Trusting JSON input without validation",
        ],
        further_reading=[
            "Prototype Pollution Explained",
            "JavaScript Security Patterns",
            "Safe Object Handling",
        ],
    ),
    V.INFINITE_LOOP: EducationalContent(
        title="Avoiding Runaway Loops",
        explanation=(
            "A loop without a reachable exit condition never yields control back to the rest of "
            "the program. In a game loop or request handler this freezes everything else."
        ),
        examples=[
            CodeExample(
                title="Busy-wait",
                unsafe="while (true) {\n  if (ready) break;\n}",
                safe="for (let i = 0; i < MAX_POLLS && !ready; i++) {\n  await sleep(100);\n}",
                explanation="Bound the number of iterations and yield between checks.",
            ),
        ],
        best_practices=[
            "Give every loop an explicit upper bound",
            "Prefer events or callbacks over polling",
            "Yield to the event loop inside long-running work",
        ],
        common_mistakes=[
            "Polling a flag in while (true)",
            "Forgetting to advance the loop variable",
        ],
        further_reading=[
            "MDN: Loops and iteration",
        ],
    ),
})


def _generic_content(violation_type: ViolationType) -> EducationalContent:
    return EducationalContent(
        title=f"Security Risk: {violation_type.value}",
        explanation=f"This security violation type ({violation_type.value}) has been detected in your code and requires attention.",
        examples=[],
        best_practices=["Review the code for security implications", "Use safer alternatives", "Implement proper validation"],
        common_mistakes=["Not considering security implications", "Using dangerous patterns"],
        further_reading=["Security Best Practices", "OWASP Guidelines"],
    )


class EducationalContentGenerator:
    """One lesson per distinct violation type, in the order types are first seen."""

    def generate(self, violations: list[SecurityViolation]) -> list[EducationalContent]:
        seen: dict[ViolationType, EducationalContent] = {}
        for violation in violations:
            if violation.type not in seen:
                seen[violation.type] = self.content_for(violation.type)
        logger.debug(f"Generated {len(seen)} lesson(s) for {len(violations)} violation(s)")
        return list(seen.values())

    def content_for(self, violation_type: ViolationType) -> EducationalContent:
        template = TEMPLATES.get(violation_type)
        if template is None:
            return _generic_content(violation_type)
        return template.model_copy(deep=True)


# ── Recommendations attached to accepted patches ──────────────────────────────

def recommendations(violations: list[SecurityViolation]) -> list[str]:
    """Severity summary followed by the first suggested fix for each violation type."""
    counts: dict[Severity, int] = {}
    for violation in violations:
        counts[violation.severity] = counts.get(violation.severity, 0) + 1

    advice: list[str] = []
    if counts.get(Severity.CRITICAL):
        advice.append("Critical security issues detected - patch should not be executed")
    if counts.get(Severity.HIGH):
        advice.append("High-risk security issues found - review and modify patch before execution")
    if counts.get(Severity.MEDIUM):
        advice.append("Medium-risk issues detected - consider additional safeguards")

    fixes_seen: set[ViolationType] = set()
    for violation in violations:
        if violation.type not in fixes_seen:
            fixes_seen.add(violation.type)
            advice.append(violation.suggested_fix)

    return advice
