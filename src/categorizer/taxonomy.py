"""
Category taxonomy for starred repositories.

The taxonomy is a fixed, ordered tuple. Declaration order matters: when the
classifier's answer matches several categories, the first one declared wins.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Category:
    name: str
    emoji: str
    description: str

    @property
    def label(self) -> str:
        """Display name with the emoji prefix, as used for GitHub Lists."""
        return f"{self.emoji} {self.name}"


CATEGORIES: tuple[Category, ...] = (
    Category(
        "AI & LLM",
        "🤖",
        "AI/LLM libraries (LangChain, LlamaIndex), vector databases, RAG frameworks, "
        "AI model APIs. NOT workflow engines that support AI agents - those are Backend.",
    ),
    Category(
        "UI & Design Systems",
        "🎨",
        "Component libraries, design systems, Tailwind, Shadcn, animations",
    ),
    Category(
        "Frontend Frameworks",
        "⚛️",
        "React, Next.js, Vue, Remix, Svelte, Deno Fresh",
    ),
    Category(
        "Testing & QA",
        "🧪",
        "Cypress, Playwright, test frameworks, E2E tools",
    ),
    Category(
        "Backend & Runtimes",
        "🚀",
        "Runtimes (Node, Deno, Bun), API frameworks, workflow/orchestration engines "
        "(Temporal, Inngest, Vercel Workflow), backend services, job queues.",
    ),
    Category(
        "DevOps & Containers",
        "🐳",
        "Docker, Kubernetes, containers, infrastructure, deployment",
    ),
    Category(
        "CLI & Terminal",
        "💻",
        "Command-line tools, shell utilities, terminal emulators, prompts",
    ),
    Category(
        "Code Quality",
        "✨",
        "Linters, formatters, static analysis, Prettier, ESLint, Biome",
    ),
    Category(
        "Dev Tooling",
        "🛠️",
        "Build/bundle tools (Webpack, Vite, Turbo), package managers (pnpm), "
        "monorepo tools. NOT analytics, monitoring, or product tools.",
    ),
    Category(
        "Web Scraping & APIs",
        "🌐",
        "Web scrapers, HTTP clients, API tools, data extraction",
    ),
    Category(
        "Editors & IDEs",
        "📝",
        "Code editors, IDEs, VSCode extensions, editor tools",
    ),
    Category(
        "Media & Download",
        "📹",
        "Video downloaders, media tools, streaming tools",
    ),
    Category(
        "Trading & Finance",
        "📈",
        "Trading bots, backtesting, technical analysis, finance tools",
    ),
    Category(
        "Logging & Debug",
        "🔍",
        "Logging, debugging, network tools, monitoring, observability, product "
        "analytics (PostHog, Sentry, Mixpanel), APM, session recording.",
    ),
    Category(
        "Databases & Auth",
        "🔐",
        "Databases (Postgres, MongoDB, Neon, Prisma), ORMs, authentication libraries "
        "(NextAuth, Better Auth), session management",
    ),
    Category(
        "Learning Resources",
        "📚",
        "Awesome lists, tutorials, courses (30-Days-Of-*, You-Dont-Know-JS), "
        "algorithm collections, cheatsheets, educational repos",
    ),
    Category(
        "Utilities & Libraries",
        "🧰",
        "General-purpose utilities (Ramda, Lodash), data structures, type libraries "
        "(type-fest), converters (turndown), diagram tools (Mermaid)",
    ),
    Category(
        "Other Tools",
        "📦",
        "Security tools, browsers, system utilities, misc tools that don't fit other "
        "categories",
    ),
)

CATEGORY_NAMES: tuple[str, ...] = tuple(c.name for c in CATEGORIES)

# Unmatched classifier answers land here
FALLBACK_CATEGORY = "Other Tools"
# Failed analyses land here; not a taxonomy entry, never synced
UNCATEGORIZED = "Uncategorized"


def match_category(raw: str, categories: tuple[Category, ...] = CATEGORIES) -> Category | None:
    """
    Map a classifier answer onto a taxonomy entry.

    Each category is tried in declared order against three rules: the exact
    name, the exact ``"<emoji> <name>"`` label, and the answer containing the
    name. The first category satisfying any rule wins.
    """
    value = raw.strip()
    for category in categories:
        if value == category.name or value == category.label or category.name in value:
            return category
    return None


def get_category(name: str) -> Category | None:
    for category in CATEGORIES:
        if category.name == name:
            return category
    return None
