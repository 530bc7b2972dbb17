"""Blog post helpers shared by the feed endpoint and the bot."""

EXCERPT_LENGTH = 150


DEMO_POSTS = [
    {
        "id": "demo-1",
        "title": "Welcome to TeleBlog!",
        "excerpt": "This is a demo post showing how TeleBlog works.",
        "content": "Demo content. Switch data_source to supabase to read real posts.",
        "tags": ["welcome", "demo"],
        "image": None,
        "user": {"first_name": "TeleBlog", "last_name": "Team", "username": "teleblog"},
        "is_published": True,
        "published_at": "2025-01-03T09:00:00+00:00",
        "created_at": "2025-01-03T09:00:00+00:00",
    },
    {
        "id": "demo-2",
        "title": "Getting Started Guide",
        "excerpt": "Learn how to create blog posts and engage with your audience on Telegram.",
        "content": "Another demo post.",
        "tags": ["tutorial", "beginners"],
        "image": None,
        "user": {"first_name": "Guide", "last_name": "Bot", "username": "guidebot"},
        "is_published": True,
        "published_at": "2025-01-01T09:00:00+00:00",
        "created_at": "2025-01-01T09:00:00+00:00",
    },
    {
        "id": "demo-3",
        "title": "Monetization Tips",
        "excerpt": "",
        "content": "Discover how to earn revenue from your content while providing value to readers.",
        "tags": ["monetization", "earnings"],
        "image": None,
        "user": {"first_name": "Revenue", "last_name": "Expert", "username": "earnings"},
        "is_published": True,
        "published_at": "2024-12-29T09:00:00+00:00",
        "created_at": "2024-12-29T09:00:00+00:00",
    },
]


def author_name(post: dict) -> str:
    """Readable author name from the embedded user object."""
    user = post.get("user") or {}
    full = " ".join(p for p in (user.get("first_name"), user.get("last_name")) if p)
    if full:
        return full
    if user.get("username"):
        return f"@{user['username']}"
    return "Anonymous"


def _excerpt(post: dict) -> str:
    if post.get("excerpt"):
        return post["excerpt"]
    content = post.get("content") or ""
    if len(content) <= EXCERPT_LENGTH:
        return content
    return content[:EXCERPT_LENGTH].rstrip() + "..."


def summarize_post(post: dict) -> dict:
    """Feed-card view of a post."""
    return {
        "id": post.get("id"),
        "title": post.get("title") or "Untitled",
        "excerpt": _excerpt(post),
        "tags": list(post.get("tags") or []),
        "author": author_name(post),
        "published_at": post.get("published_at"),
    }


def format_latest_posts(posts: list[dict]) -> str:
    """Render posts as the numbered list the bot sends for /posts."""
    if not posts:
        return "No articles have been published yet."
    lines = ["Latest Articles on TeleBlog Lite", ""]
    for i, post in enumerate(posts, start=1):
        lines.append(f'{i}. "{post.get("title") or "Untitled"}" by {author_name(post)}')
    lines.append("")
    lines.append("Open the app to read these articles:")
    return "\n".join(lines)
