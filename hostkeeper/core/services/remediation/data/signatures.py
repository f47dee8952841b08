"""
L0 Data — Failure signature tables.

One ordered list per ecosystem. The classifier walks a list top to
bottom and the first pattern that matches wins, so more specific
signatures must come before broader ones.

Each entry:
    failure_id      unique id across all tables
    pattern         regex (case-insensitive, dot matches newline);
                    named groups become template variables
    category        see VALID_CATEGORIES
    label           short human name
    description     what went wrong
    example_stderr  real-world output the pattern must match
    terminal        remediation fixes the host but a retry cannot
                    succeed in this run (e.g. a GUI installer)
    steps           remediation steps, run in order

Step fields are templates. Variables come from the pattern's named
groups, the failing stage (``packages``), and the run configuration
(``home``, ``user``, ``venv``, ``python``, ``manifest``,
``manifest_dir``, ``requirements``, ``node_version``, ``ruby_version``,
``python_version``). An argv element that is exactly ``{name}`` for a
list variable expands to the list's items.

Validated into ``ErrorSignature`` models by domain/matching.py.
"""

from __future__ import annotations

# ── Valid values ────────────────────────────────────────────────

VALID_CATEGORIES = {
    "permissions",
    "toolchain",
    "package_manager",
    "dependency",
    "environment",
    "runtime",
}


# ═════════════════════════════════════════════════════════════════
# os — Homebrew, system toolchain
# ═════════════════════════════════════════════════════════════════

_OS_SIGNATURES: list[dict] = [
    {
        "failure_id": "brew_cache_permission",
        "pattern": r"(?:Permission denied|EACCES).*?Library/Caches/Homebrew",
        "category": "permissions",
        "label": "Homebrew cache not writable",
        "description": (
            "The Homebrew download cache (or something inside it) is owned "
            "by another user, usually root after a sudo'd brew call."
        ),
        "example_stderr": (
            "Error: Permission denied @ apply2files - "
            "/Users/alice/Library/Caches/Homebrew/downloads/"
            "3b1f--wget-1.21.4.arm64_sonoma.bottle.tar.gz"
        ),
        "steps": [
            {
                "kind": "take_ownership",
                "label": "Reclaim the Homebrew cache",
                "path": "{home}/Library/Caches/Homebrew",
            },
        ],
    },
    {
        "failure_id": "xcode_clt_missing",
        "pattern": r"xcrun: error: invalid active developer path",
        "category": "toolchain",
        "label": "Command Line Tools missing",
        "description": (
            "The Xcode Command Line Tools were removed, typically by an OS "
            "upgrade. The installer is a GUI dialog; the stage cannot "
            "succeed until it finishes."
        ),
        "example_stderr": (
            "xcrun: error: invalid active developer path "
            "(/Library/Developer/CommandLineTools), missing xcrun at: "
            "/Library/Developer/CommandLineTools/usr/bin/xcrun"
        ),
        "terminal": True,
        "steps": [
            {
                "kind": "command",
                "label": "Launch the Command Line Tools installer",
                "argv": ["xcode-select", "--install"],
            },
        ],
    },
    {
        "failure_id": "brew_locked",
        "pattern": (
            r"Another active Homebrew \w+ process is already in progress"
            r"|\.lock.{0,40}already locked"
        ),
        "category": "package_manager",
        "label": "Stale Homebrew lock",
        "description": "A previous brew process died and left its lock behind.",
        "example_stderr": (
            "Error: Another active Homebrew update process is already in progress.\n"
            "Please wait for it to finish or terminate it to continue."
        ),
        "steps": [
            {
                "kind": "command",
                "label": "Reset the Homebrew repository",
                "argv": ["brew", "update-reset"],
            },
        ],
    },
    {
        "failure_id": "brew_link_conflict",
        "pattern": r"Could not symlink .*?brew link --overwrite (?P<formula>[\w@.+-]+)",
        "category": "package_manager",
        "label": "Formula could not be linked",
        "description": "Files from another install are in the way of the formula's symlinks.",
        "example_stderr": (
            "Error: The `brew link` step did not complete successfully\n"
            "The formula built, but is not symlinked into /usr/local\n"
            "Could not symlink bin/node\n"
            "Target /usr/local/bin/node\n"
            "already exists. You may want to remove it:\n"
            "  rm '/usr/local/bin/node'\n"
            "\n"
            "To force the link and overwrite all conflicting files:\n"
            "  brew link --overwrite node"
        ),
        "steps": [
            {
                "kind": "command",
                "label": "Force the link",
                "argv": ["brew", "link", "--overwrite", "{formula}"],
            },
        ],
    },
    {
        "failure_id": "brew_formula_removed",
        "pattern": r'No available formula with the name "(?P<formula>[^"]+)"',
        "category": "dependency",
        "label": "Formula no longer exists",
        "description": "An installed formula was removed from its tap.",
        "example_stderr": (
            "Error: No available formula with the name \"python@3.7\".\n"
            "Did you mean python@3.12, python@3.11 or python@3.10?"
        ),
        "steps": [
            {
                "kind": "command",
                "label": "Uninstall the orphaned formula",
                "argv": ["brew", "uninstall", "{formula}"],
            },
        ],
    },
]


# ═════════════════════════════════════════════════════════════════
# js — npm global packages
# ═════════════════════════════════════════════════════════════════

_JS_SIGNATURES: list[dict] = [
    {
        "failure_id": "npm_cache_root_owned",
        "pattern": r"root-owned files|EACCES.{0,200}?/\.npm/",
        "category": "permissions",
        "label": "npm cache owned by root",
        "description": "Old npm versions run under sudo left root-owned files in ~/.npm.",
        "example_stderr": (
            "npm ERR! code EACCES\n"
            "npm ERR! syscall open\n"
            "npm ERR! path /Users/alice/.npm/_cacache/index-v5/1f/aa/9c0e\n"
            "npm ERR! errno -13\n"
            "npm ERR! \n"
            "npm ERR! Your cache folder contains root-owned files, due to a bug in\n"
            "npm ERR! previous versions of npm which has since been addressed."
        ),
        "steps": [
            {
                "kind": "take_ownership",
                "label": "Reclaim the npm cache",
                "path": "{home}/.npm",
            },
        ],
    },
    {
        "failure_id": "npm_prefix_not_writable",
        "pattern": r"EACCES.*?(?P<path>/\S*?/lib/node_modules)\b",
        "category": "permissions",
        "label": "Global node_modules not writable",
        "description": "The global install prefix belongs to another user.",
        "example_stderr": (
            "npm ERR! code EACCES\n"
            "npm ERR! syscall mkdir\n"
            "npm ERR! path /usr/local/lib/node_modules/typescript\n"
            "npm ERR! errno -13\n"
            "npm ERR! Error: EACCES: permission denied, mkdir "
            "'/usr/local/lib/node_modules/typescript'"
        ),
        "steps": [
            {
                "kind": "take_ownership",
                "label": "Reclaim the global prefix",
                "path": "{path}",
            },
        ],
    },
    {
        "failure_id": "npm_package_gone",
        "pattern": (
            r"E404.*?'(?P<package>(?:@[\w.-]+/)?[\w.-]+)@[^']*' "
            r"is not in (?:this|the npm) registry"
        ),
        "category": "dependency",
        "label": "Package removed from the registry",
        "description": "A globally installed package was unpublished or renamed.",
        "example_stderr": (
            "npm ERR! code E404\n"
            "npm ERR! 404 Not Found - GET https://registry.npmjs.org/left-padx - Not found\n"
            "npm ERR! 404 \n"
            "npm ERR! 404  'left-padx@*' is not in this registry."
        ),
        "steps": [
            {
                "kind": "command",
                "label": "Uninstall the missing package",
                "argv": ["npm", "uninstall", "-g", "{package}"],
            },
            {
                "kind": "manifest_remove",
                "label": "Drop it from the manifest",
                "manifest": "{manifest}",
                "package": "{package}",
                "only_if_exists": "{manifest}",
            },
            {
                "kind": "command",
                "label": "Reinstall from the manifest",
                "argv": ["npm", "install", "--prefix", "{manifest_dir}"],
                "only_if_exists": "{manifest}",
            },
        ],
    },
    {
        "failure_id": "npm_engine_unsupported",
        "pattern": (
            r"(?:EBADENGINE|Unsupported engine).*?"
            r"required:\s*\{\s*\"?node\"?\s*:\s*[\"'](?P<version>[^\"']+)[\"']"
        ),
        "category": "runtime",
        "label": "Node.js version not supported",
        "description": "A package needs a different Node.js than the active one.",
        "example_stderr": (
            "npm WARN EBADENGINE Unsupported engine {\n"
            "npm WARN EBADENGINE   package: 'vite@5.0.0',\n"
            "npm WARN EBADENGINE   required: { node: '^18.0.0 || >=20.0.0' },\n"
            "npm WARN EBADENGINE   current: { node: 'v16.20.0', npm: '8.19.4' }\n"
            "npm WARN EBADENGINE }"
        ),
        "steps": [
            {
                "kind": "ensure_runtime",
                "label": "Activate a supported Node.js",
                "runtime": "node",
                "version": "{version}",
            },
        ],
    },
    {
        "failure_id": "node_gyp_failed",
        "pattern": r"gyp ERR!",
        "category": "toolchain",
        "label": "Native addon build failed",
        "description": "A native module was built against a different Node.js ABI.",
        "example_stderr": (
            "npm ERR! gyp ERR! build error\n"
            "npm ERR! gyp ERR! stack Error: `make` failed with exit code: 2\n"
            "npm ERR! gyp ERR! node -v v20.11.0"
        ),
        "steps": [
            {
                "kind": "command",
                "label": "Rebuild global native modules",
                "argv": ["npm", "rebuild", "-g"],
            },
        ],
    },
]


# ═════════════════════════════════════════════════════════════════
# ruby — RubyGems
# ═════════════════════════════════════════════════════════════════

_RUBY_SIGNATURES: list[dict] = [
    {
        "failure_id": "gem_extensions_not_built",
        "pattern": (
            r"Ignoring (?P<package>[\w.-]+?)-(?P<version>\d[\w.]*?) "
            r"because its extensions are not built"
        ),
        "category": "toolchain",
        "label": "Gem extensions not built",
        "description": "A gem's native extension is missing, usually after a Ruby upgrade.",
        "example_stderr": (
            "Ignoring nokogiri-1.15.4 because its extensions are not built. "
            "Try: gem pristine nokogiri --version 1.15.4"
        ),
        "steps": [
            {
                "kind": "command",
                "label": "Rebuild the gem",
                "argv": ["gem", "pristine", "{package}", "--version", "{version}"],
            },
        ],
    },
    {
        "failure_id": "gem_requires_ruby",
        "pattern": r"requires Ruby version (?P<version>[<>=~]*\s*\d+(?:\.\d+)*)",
        "category": "runtime",
        "label": "Ruby version too old",
        "description": "An updated gem needs a newer Ruby than the active one.",
        "example_stderr": (
            "ERROR:  Error installing rails:\n"
            "\tThe last version of activesupport (>= 7.1) to support your Ruby & "
            "RubyGems was 6.1.7.6.\n"
            "\tactivesupport requires Ruby version >= 2.7.0."
        ),
        "steps": [
            {
                "kind": "ensure_runtime",
                "label": "Activate a newer Ruby",
                "runtime": "ruby",
                "version": "{version}",
            },
        ],
    },
    {
        "failure_id": "gem_system_ruby",
        "pattern": r"You don't have write permissions for the (?P<path>\S+) directory",
        "category": "environment",
        "label": "System Ruby in use",
        "description": "gem is pointed at the OS Ruby, which must not be modified.",
        "example_stderr": (
            "ERROR:  While executing gem ... (Gem::FilePermissionError)\n"
            "    You don't have write permissions for the "
            "/Library/Ruby/Gems/2.6.0 directory."
        ),
        "steps": [
            {
                "kind": "ensure_runtime",
                "label": "Switch to a managed Ruby",
                "runtime": "ruby",
                "version": "{ruby_version}",
            },
        ],
    },
    {
        "failure_id": "gem_not_found",
        "pattern": r"Could not find a valid gem '(?P<package>[^']+)'",
        "category": "dependency",
        "label": "Gem no longer published",
        "description": "An installed gem has been yanked from the repository.",
        "example_stderr": (
            "ERROR:  Could not find a valid gem 'sass-legacy' (>= 0) in any repository"
        ),
        "steps": [
            {
                "kind": "command",
                "label": "Remove every version of the gem",
                "argv": ["gem", "uninstall", "-aIx", "{package}"],
            },
        ],
    },
]


# ═════════════════════════════════════════════════════════════════
# python — pip
# ═════════════════════════════════════════════════════════════════

_PYTHON_SIGNATURES: list[dict] = [
    {
        "failure_id": "pep668",
        "pattern": r"externally[-_ ]managed[-_ ]environment",
        "category": "environment",
        "label": "Externally managed Python (PEP 668)",
        "description": (
            "The interpreter belongs to the OS or Homebrew and refuses "
            "pip installs. Packages move into an isolated venv."
        ),
        "example_stderr": (
            "error: externally-managed-environment\n"
            "\n"
            "× This environment is externally managed\n"
            "╰─> To install Python packages system-wide, try brew install\n"
            "    xyz, where xyz is the package you are trying to install."
        ),
        "steps": [
            {
                "kind": "create_venv",
                "label": "Create the isolated environment",
                "path": "{venv}",
            },
            {
                "kind": "command",
                "label": "Upgrade packages inside it",
                "argv": [
                    "{venv}/bin/python", "-m", "pip", "install", "--upgrade",
                    "pip", "{packages}",
                ],
            },
        ],
    },
    {
        "failure_id": "pip_cache_permission",
        "pattern": r"Permission denied: '(?P<path>/\S*?/(?:Library/Caches|\.cache)/pip)",
        "category": "permissions",
        "label": "pip cache not writable",
        "description": "The pip cache was populated by a sudo'd pip.",
        "example_stderr": (
            "WARNING: The directory '/Users/alice/Library/Caches/pip' or its parent "
            "directory is not owned or is not writable by the current user.\n"
            "ERROR: Could not install packages due to an OSError: [Errno 13] "
            "Permission denied: '/Users/alice/Library/Caches/pip/http-v2/a/b/c'"
        ),
        "steps": [
            {
                "kind": "take_ownership",
                "label": "Reclaim the pip cache",
                "path": "{path}",
            },
        ],
    },
    {
        "failure_id": "pip_requires_python",
        "pattern": r"requires a different Python: \S+ not in '(?P<version>[^']+)'",
        "category": "runtime",
        "label": "Python version not supported",
        "description": "An upgrade needs a different Python than the active one.",
        "example_stderr": (
            "ERROR: Package 'numpy' requires a different Python: 3.8.18 not in '>=3.9'"
        ),
        "steps": [
            {
                "kind": "ensure_runtime",
                "label": "Activate a supported Python",
                "runtime": "python",
                "version": "{version}",
            },
        ],
    },
    {
        "failure_id": "pip_no_distribution",
        "pattern": (
            r"(?:No matching distribution found for"
            r"|Could not find a version that satisfies the requirement) "
            r"(?P<package>[A-Za-z0-9][A-Za-z0-9._-]*)"
        ),
        "category": "dependency",
        "label": "Package no longer published",
        "description": "An installed distribution is gone from the index.",
        "example_stderr": (
            "ERROR: Could not find a version that satisfies the requirement "
            "oldlib (from versions: none)\n"
            "ERROR: No matching distribution found for oldlib"
        ),
        "steps": [
            {
                "kind": "command",
                "label": "Uninstall the package",
                "argv": ["{python}", "-m", "pip", "uninstall", "-y", "{package}"],
            },
            {
                "kind": "manifest_remove",
                "label": "Drop it from requirements",
                "manifest": "{requirements}",
                "package": "{package}",
                "only_if_exists": "{requirements}",
            },
        ],
    },
]


SIGNATURE_TABLES: dict[str, list[dict]] = {
    "os": _OS_SIGNATURES,
    "js": _JS_SIGNATURES,
    "ruby": _RUBY_SIGNATURES,
    "python": _PYTHON_SIGNATURES,
}
