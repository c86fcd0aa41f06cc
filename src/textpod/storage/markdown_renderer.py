"""Markdown rendering for textpod notes.

Renders note content to HTML with Python-Markdown's ``extra`` set plus
the GitHub-flavoured pieces from pymdown-extensions: strikethrough
(``tilde``), superscript (``caret``), task lists and bare-URL autolinks
(``magiclink``). A final filter neutralizes tags which would break out
of the page (``<script>``, ``<iframe>`` and friends). Raw HTML is
otherwise passed through.

Rendering is a pure function; a fresh ``Markdown`` instance is built per
call so concurrent renders never share parser state.
"""
import re

import markdown
from markdown.extensions import Extension
from markdown.postprocessors import Postprocessor

MARKER = "+"
LOCAL_COPY_LABEL = "local copy"

# Same list GitHub's tagfilter extension uses
_FILTERED_TAGS_RE = re.compile(
    r"<(/?)(title|textarea|style|xmp|iframe|noembed|noframes|script|plaintext)"
    r"(?=[\s/>])",
    re.IGNORECASE,
)

MARKDOWN_EXTENSIONS = [
    "extra",
    "sane_lists",
    "pymdownx.tilde",
    "pymdownx.caret",
    "pymdownx.tasklist",
    "pymdownx.magiclink",
]

EXTENSION_CONFIGS = {
    # ~x~ subscript would clash with casual tilde use; only ~~x~~ is kept
    "pymdownx.tilde": {"subscript": False},
    # ^^x^^ insert markup is not GitHub syntax
    "pymdownx.caret": {"insert": False},
}


class _TagFilterPostprocessor(Postprocessor):
    """Escape the opening bracket of tags that can hijack the page."""

    def run(self, text: str) -> str:
        return _FILTERED_TAGS_RE.sub(r"&lt;\1\2", text)


class TagFilterExtension(Extension):
    def extendMarkdown(self, md: markdown.Markdown) -> None:
        # Priority 5 runs after raw HTML has been restored (priority 30)
        md.postprocessors.register(_TagFilterPostprocessor(md), "tag_filter", 5)


def render_markdown(content: str) -> str:
    """Render note content to HTML."""
    return markdown.markdown(
        content,
        extensions=MARKDOWN_EXTENSIONS + [TagFilterExtension()],
        extension_configs=EXTENSION_CONFIGS,
    )


def marker_for(url: str) -> str:
    """Return the marker token asking for a local copy of ``url``."""
    return f"{MARKER}{url}"


def rewrite_local_link(content: str, external_link: str, local_link: str) -> str:
    """Point every ``+<external_link>`` in ``content`` at its local copy.

    Content without the marker is returned unchanged.

    Example:
        >>> rewrite_local_link("+http://foo.bar", "http://foo.bar", "foo/bar")
        'http://foo.bar ([local copy](foo/bar))'
    """
    return content.replace(
        marker_for(external_link),
        f"{external_link} ([{LOCAL_COPY_LABEL}]({local_link}))",
    )
