"""Assemble extracted chapters into one offline HTML reader."""

from datetime import datetime, timezone
from html import escape

from pydantic import BaseModel

from chapter_aggregator import __version__
from chapter_aggregator.extractor.chapter import UNKNOWN_NOVEL, ExtractedChapter
from chapter_aggregator.utils.url_utils import sanitize_filename

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class ReaderDocument(BaseModel):
    """A generated reading document ready to be written to disk."""

    filename: str
    html: str
    novel_title: str
    chapter_count: int


def content_hash(text: str) -> str:
    """Non-cryptographic 32-bit string hash rendered in base 36.

    Computes ``h = h * 31 + unit`` over UTF-16 code units with signed 32-bit
    wrap-around and returns the base-36 digits of ``abs(h)``. Only meant as a
    short label to tell otherwise similar filenames apart.
    """
    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def build_filename(chapters: list[ExtractedChapter], generated_at: datetime) -> str:
    """``<title>_<count>ch_<YYYYMMDDTHHMMSS>_<hash6>.html`` for a chapter list."""
    novel_title = chapters[0].novel_title if chapters else ""
    novel_title = novel_title or UNKNOWN_NOVEL.replace(" ", "_")
    stamp = generated_at.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%S")
    digest = content_hash("".join(ch.chapter_title for ch in chapters))[:6]
    return f"{sanitize_filename(novel_title)}_{len(chapters)}ch_{stamp}_{digest}.html"


def assemble(
    chapters: list[ExtractedChapter], generated_at: datetime | None = None
) -> ReaderDocument:
    """Build the reader document for chapters given in reading order."""
    if not chapters:
        raise ValueError("Cannot assemble a document without chapters")
    generated_at = generated_at or datetime.now(timezone.utc)
    novel_title = chapters[0].novel_title or UNKNOWN_NOVEL

    return ReaderDocument(
        filename=build_filename(chapters, generated_at),
        html=_render(novel_title, chapters, generated_at),
        novel_title=novel_title,
        chapter_count=len(chapters),
    )


def _render(novel_title: str, chapters: list[ExtractedChapter], generated_at: datetime) -> str:
    title = escape(novel_title)
    count = len(chapters)
    toc = "\n".join(
        f'            <a href="#chapter-{i}" class="chapter-item" '
        f'onclick="navigateToChapter({i})">{i}. {escape(ch.chapter_title)}</a>'
        for i, ch in enumerate(chapters, start=1)
    )
    sections = "\n".join(
        f'        <section class="chapter" data-source="{escape(ch.source_url)}">\n'
        f'            <h2 class="chapter-title" id="chapter-{i}">{escape(ch.chapter_title)}</h2>\n'
        f'            <div class="chapter-content">\n{ch.content_html}\n            </div>\n'
        f"        </section>"
        for i, ch in enumerate(chapters, start=1)
    )
    generated = generated_at.strftime("%Y-%m-%d %H:%M")

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <meta name="generator" content="chapter-aggregator {__version__}">
    <title>{title}</title>
    <style>
{_STYLE}
    </style>
</head>
<body>
    <nav class="navbar">
        <div class="nav-brand">{title}</div>
        <div class="nav-stats">{count} chapters</div>
        <button class="menu-toggle" onclick="toggleSidebar()">Chapters</button>
    </nav>
    <div class="progress-bar" id="progress-bar"></div>
    <aside class="sidebar" id="sidebar">
        <div class="sidebar-header">
            <div class="sidebar-title">{title}</div>
            <div class="sidebar-meta">{count} chapters &middot; generated {generated}</div>
        </div>
        <nav class="chapter-list">
{toc}
        </nav>
    </aside>
    <main class="main-content" id="main-content">
        <h1 class="book-title">{title}</h1>
        <div class="metadata">Generated on {generated} &middot; {count} chapters</div>
{sections}
        <div class="metadata">End of {title} &middot; {count} chapters</div>
    </main>
    <div class="nav-controls">
        <button class="nav-btn" id="prev-btn" onclick="navigatePrev()" title="Previous chapter">&lsaquo;</button>
        <button class="nav-btn" id="next-btn" onclick="navigateNext()" title="Next chapter">&rsaquo;</button>
    </div>
    <script>
        const totalChapters = {count};
{_SCRIPT}
    </script>
</body>
</html>
"""


_STYLE = """\
        :root {
            --primary-bg: #ffffff; --secondary-bg: #f8f9fa; --text-primary: #2c3e50;
            --text-secondary: #6c757d; --accent: #007bff; --border: #dee2e6;
            --navbar-height: 60px;
        }
        @media (prefers-color-scheme: dark) {
            :root {
                --primary-bg: #1a1a1a; --secondary-bg: #2d2d2d; --text-primary: #e9ecef;
                --text-secondary: #adb5bd; --accent: #0d6efd; --border: #495057;
            }
        }
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            line-height: 1.7; color: var(--text-primary); background: var(--primary-bg);
        }
        .navbar {
            position: fixed; top: 0; left: 0; right: 0; height: var(--navbar-height);
            display: flex; align-items: center; padding: 0 20px; z-index: 1000;
            background: var(--secondary-bg); border-bottom: 1px solid var(--border);
        }
        .nav-brand { font-weight: 700; color: var(--accent); margin-right: auto; }
        .nav-stats { font-size: 14px; color: var(--text-secondary); margin-right: 20px; }
        .menu-toggle, .nav-btn {
            background: var(--accent); color: #fff; border: none; border-radius: 8px;
            padding: 8px 12px; cursor: pointer;
        }
        .nav-btn:disabled { opacity: 0.4; cursor: default; }
        .progress-bar {
            position: fixed; top: var(--navbar-height); left: 0; height: 3px; width: 0;
            background: var(--accent); z-index: 1001;
        }
        .sidebar {
            position: fixed; top: var(--navbar-height); left: -300px; width: 300px;
            height: calc(100vh - var(--navbar-height)); overflow-y: auto; z-index: 999;
            background: var(--secondary-bg); border-right: 1px solid var(--border);
            transition: left 0.3s ease;
        }
        .sidebar.open { left: 0; }
        .sidebar-header { padding: 20px; border-bottom: 1px solid var(--border); }
        .sidebar-title { font-weight: 600; }
        .sidebar-meta { font-size: 12px; color: var(--text-secondary); }
        .chapter-item {
            display: block; padding: 10px 20px; color: var(--text-secondary);
            text-decoration: none; border-left: 3px solid transparent;
        }
        .chapter-item.active { color: var(--accent); border-left-color: var(--accent); }
        .main-content {
            max-width: 800px; margin: 0 auto; padding: calc(var(--navbar-height) + 40px) 20px 80px;
        }
        .book-title { font-size: 2.2rem; text-align: center; margin-bottom: 20px; }
        .chapter-title {
            font-size: 1.6rem; margin: 60px 0 24px; padding-bottom: 10px;
            border-bottom: 2px solid var(--border); scroll-margin-top: 80px;
        }
        .chapter-content p { margin-bottom: 1.2em; text-align: justify; }
        .metadata { text-align: center; font-size: 14px; color: var(--text-secondary); margin: 30px 0; }
        .nav-controls { position: fixed; bottom: 20px; right: 20px; display: flex; gap: 10px; }
        @media print {
            .navbar, .sidebar, .nav-controls, .progress-bar { display: none; }
            .main-content { padding-top: 0; }
            .chapter-title { page-break-before: always; }
        }"""

_SCRIPT = """\
        let currentChapter = 1;
        let sidebarOpen = false;

        function toggleSidebar() {
            sidebarOpen = !sidebarOpen;
            document.getElementById('sidebar').classList.toggle('open', sidebarOpen);
        }

        function navigateToChapter(n) {
            const target = document.getElementById('chapter-' + n);
            if (!target) return;
            currentChapter = n;
            target.scrollIntoView({ behavior: 'smooth', block: 'start' });
            updateNavButtons();
            updateActiveChapter();
        }

        function navigatePrev() { if (currentChapter > 1) navigateToChapter(currentChapter - 1); }
        function navigateNext() { if (currentChapter < totalChapters) navigateToChapter(currentChapter + 1); }

        function updateProgress() {
            const total = document.documentElement.scrollHeight - window.innerHeight;
            const pct = total > 0 ? (window.pageYOffset / total) * 100 : 0;
            document.getElementById('progress-bar').style.width = Math.min(100, Math.max(0, pct)) + '%';
        }

        function updateCurrentChapter() {
            const titles = document.querySelectorAll('.chapter-title');
            const pos = window.pageYOffset + 100;
            for (let i = titles.length - 1; i >= 0; i--) {
                if (titles[i].offsetTop <= pos) {
                    if (i + 1 !== currentChapter) {
                        currentChapter = i + 1;
                        updateNavButtons();
                        updateActiveChapter();
                    }
                    break;
                }
            }
        }

        function updateNavButtons() {
            document.getElementById('prev-btn').disabled = currentChapter <= 1;
            document.getElementById('next-btn').disabled = currentChapter >= totalChapters;
        }

        function updateActiveChapter() {
            document.querySelectorAll('.chapter-item').forEach((item, index) => {
                item.classList.toggle('active', index + 1 === currentChapter);
            });
        }

        document.addEventListener('DOMContentLoaded', () => {
            updateProgress();
            updateNavButtons();
            updateActiveChapter();
            let scrollTimeout;
            window.addEventListener('scroll', () => {
                clearTimeout(scrollTimeout);
                scrollTimeout = setTimeout(() => { updateProgress(); updateCurrentChapter(); }, 16);
            });
            document.addEventListener('keydown', (e) => {
                if (e.key === 'ArrowLeft' && e.ctrlKey) { e.preventDefault(); navigatePrev(); }
                else if (e.key === 'ArrowRight' && e.ctrlKey) { e.preventDefault(); navigateNext(); }
                else if (e.key === 'Escape' && sidebarOpen) { toggleSidebar(); }
            });
        });"""
