"""
报告渲染器
- markdown: 结构化文档
- json:     数据交换格式
- html:     Jinja2 模板 + CSS，可在浏览器查看
- pdf:      先渲染 HTML，再交给 pdf_converter 转换 (两阶段)
各格式按 length (light / short / detailed) 决定段落与截断规则。
"""
import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict, Optional, Union

import markdown
from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import GlobalConfig
from errors import PrintConversionError, RenderError
from models import (
    LENGTHS,
    NarrativeSections,
    ReportMetadata,
    Statistics,
)
import pdf_converter

logger = logging.getLogger(__name__)

FORMATS = ("markdown", "json", "html", "pdf")

FILE_EXTENSIONS = {"markdown": "md", "json": "json", "html": "html", "pdf": "pdf"}

PLACEHOLDER_TITLE = "AI narrative unavailable"

# 各长度下展示的叙述段落
NARRATIVE_SECTIONS = {
    "light": ("summary",),
    "short": ("summary", "highlights", "categories"),
    "detailed": ("summary", "highlights", "categories", "risks", "recommendations"),
}

SECTION_HEADINGS = {
    "summary": "📋 Executive Summary",
    "highlights": "🎯 Highlights",
    "categories": "🗂️ Work by Category",
    "risks": "⚠️ Risks",
    "recommendations": "💡 Recommendations",
}

# detailed 模式下文件表的最大行数
MAX_FILE_ROWS = 50


def placeholder_text(narrative: NarrativeSections) -> str:
    reason = narrative.reason or "no provider produced a result"
    return f"{PLACEHOLDER_TITLE} ({reason}). The statistics below are complete."


def _narrative_for(narrative: NarrativeSections, length: str) -> Dict[str, str]:
    """
    取出当前长度需要展示的段落。
    叙述不可用时只返回一条占位文本，绝不返回空。
    """
    if not narrative.available:
        return {"summary": placeholder_text(narrative)}
    return {
        name: narrative.sections[name]
        for name in NARRATIVE_SECTIONS[length]
        if narrative.sections.get(name)
    }


def _format_change(change: Union[float, str]) -> str:
    if isinstance(change, str):
        return change
    return f"{change:+.1f}%"


def _generated_at(metadata: ReportMetadata) -> datetime:
    return metadata.generated_at or datetime.now().astimezone()


def _totals(stats: Statistics) -> Dict[str, int]:
    return {
        "commits": stats.commit_count,
        "authors": stats.author_count,
        "files_changed": stats.file_count,
        "lines_added": stats.lines_added,
        "lines_removed": stats.lines_removed,
    }


# ---------------------------------------------------------------------
# markdown
# ---------------------------------------------------------------------


def generate_markdown_report(
    stats: Statistics,
    narrative: NarrativeSections,
    length: str,
    metadata: ReportMetadata,
) -> str:
    """生成 Markdown 结构化文档"""
    lines = [
        "# 🚀 Development Accomplishment Report",
        "",
        f"**Generated:** {_generated_at(metadata).strftime('%Y-%m-%d %H:%M')}  ",
        f"**Repository:** {metadata.repo_name or 'unknown'} (`{metadata.branch}`)  ",
        f"**Period:** {metadata.period}"
        + (f" (Author: {metadata.author_filter})" if metadata.author_filter else "")
        + "  ",
        f"**Report Length:** {length.capitalize()}",
        "",
        "---",
        "",
    ]

    sections = _narrative_for(narrative, length)
    if not narrative.available:
        lines += [f"## {SECTION_HEADINGS['summary']}", "", f"> ⚠️ {sections['summary']}", ""]
    else:
        for name, text in sections.items():
            lines += [f"## {SECTION_HEADINGS[name]}", "", text, ""]

    lines += [
        "## 📈 Statistics",
        "",
        f"- **Commits:** {stats.commit_count}",
        f"- **Authors:** {stats.author_count}",
        f"- **Files Changed:** {stats.file_count}",
        f"- **Lines:** +{stats.lines_added} / -{stats.lines_removed}",
    ]
    if stats.commit_count == 0:
        lines.append("- _No activity in this period._")
    lines.append("")

    if length in ("short", "detailed"):
        lines += ["## 🗂️ Commits by Category", "", "| Category | Commits |", "|---|---:|"]
        lines += [f"| {name} | {count} |" for name, count in stats.categories.items()]
        lines.append("")

    if length == "detailed":
        if stats.deltas:
            lines += [
                "## 🔁 Compared to Previous Period",
                "",
                "| Metric | Current | Previous | Change |",
                "|---|---:|---:|---:|",
            ]
            for metric, delta in stats.deltas.items():
                lines.append(
                    f"| {metric} | {delta.current} | {delta.previous} | {_format_change(delta.change)} |"
                )
            lines.append("")

        if stats.directories:
            lines += ["## 🧭 Most Active Areas", ""]
            lines += [f"- `{area}`: {count} file changes" for area, count in stats.directories.items()]
            lines += ["", "**By extension:** " + ", ".join(
                f"`{ext}` ({count})" for ext, count in stats.extensions.items()
            ), ""]

        if stats.file_stats:
            lines += [
                "## 📁 File Changes",
                "",
                "| File | Commits | Added | Removed |",
                "|---|---:|---:|---:|",
            ]
            for f in stats.file_stats[:MAX_FILE_ROWS]:
                lines.append(f"| `{f.filename}` | {f.commits} | +{f.additions} | -{f.deletions} |")
            hidden = len(stats.file_stats) - MAX_FILE_ROWS
            if hidden > 0:
                lines.append(f"\n📎 *... and {hidden} more files*")
            lines.append("")

    lines += ["---", "", "<sub>Generated by <strong>DevSum</strong> 🤖</sub>", ""]
    return "\n".join(lines)


# ---------------------------------------------------------------------
# json
# ---------------------------------------------------------------------


def build_json_document(
    stats: Statistics,
    narrative: NarrativeSections,
    length: str,
    metadata: ReportMetadata,
) -> Dict[str, Any]:
    """
    顶层键:
    - light:    metadata, totals, narrative
    - short:    + categories
    - detailed: + areas, files, comparison
    """
    doc: Dict[str, Any] = {
        "metadata": {
            "generated_at": _generated_at(metadata).isoformat(),
            "repository": metadata.repo_name,
            "branch": metadata.branch,
            "period": metadata.period,
            "author": metadata.author_filter,
            "report_length": length,
        },
        "totals": _totals(stats),
        "narrative": {
            "available": narrative.available,
            "provider": narrative.provider,
            "model": narrative.model,
            "sections": _narrative_for(narrative, length),
        },
    }
    if not narrative.available:
        doc["narrative"]["reason"] = narrative.reason

    if length in ("short", "detailed"):
        doc["categories"] = dict(stats.categories)

    if length == "detailed":
        doc["areas"] = {
            "most_active": stats.most_active_area,
            "directories": dict(stats.directories),
            "extensions": dict(stats.extensions),
        }
        doc["files"] = [
            {
                "path": f.filename,
                "commits": f.commits,
                "lines_added": f.additions,
                "lines_removed": f.deletions,
            }
            for f in stats.file_stats
        ]
        doc["comparison"] = (
            {
                metric: {
                    "current": d.current,
                    "previous": d.previous,
                    "change": d.change,
                }
                for metric, d in stats.deltas.items()
            }
            if stats.deltas
            else None
        )
    return doc


def generate_json_report(
    stats: Statistics,
    narrative: NarrativeSections,
    length: str,
    metadata: ReportMetadata,
) -> str:
    return json.dumps(
        build_json_document(stats, narrative, length, metadata),
        indent=2,
        ensure_ascii=False,
    )


# ---------------------------------------------------------------------
# html
# ---------------------------------------------------------------------


def _read_template_file(global_config: GlobalConfig, filename: str) -> str:
    """读取 CSS 文件内容"""
    css_path = os.path.join(
        global_config.SCRIPT_BASE_PATH, global_config.TEMPLATES_DIR_NAME, filename
    )
    try:
        with open(css_path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        logger.error(f"❌ 加载 CSS 模板失败 ({css_path}): {e}")
        return f"/* CSS template not found: {filename} */"


def generate_html_report(
    stats: Statistics,
    narrative: NarrativeSections,
    length: str,
    metadata: ReportMetadata,
    global_config: GlobalConfig,
    print_ready: bool = False,
) -> str:
    """
    使用 Jinja2 模板引擎生成 HTML 报告。
    print_ready=True 时额外嵌入打印样式 (供 PDF 转换使用)。
    """
    # 1. 准备模板环境
    templates_dir = os.path.join(global_config.SCRIPT_BASE_PATH, global_config.TEMPLATES_DIR_NAME)
    env = Environment(
        loader=FileSystemLoader(templates_dir),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )

    # 2. 预处理 Markdown 叙述
    narrative_html = {
        name: markdown.markdown(text, extensions=["fenced_code", "tables", "sane_lists"])
        for name, text in _narrative_for(narrative, length).items()
    }

    css_content = _read_template_file(global_config, "styles.css")
    if print_ready:
        css_content += "\n" + _read_template_file(global_config, "pdf_style.css")

    # 3. 组装完整上下文
    template_context = {
        "title": f"Accomplishment Report - {_generated_at(metadata).strftime('%Y-%m-%d')}",
        "generation_time": _generated_at(metadata).strftime("%Y-%m-%d %H:%M:%S"),
        "css_content": css_content,
        "metadata": metadata,
        "length": length,
        "stats": stats,
        "totals": _totals(stats),
        "narrative_available": narrative.available,
        "narrative_html": narrative_html,
        "section_headings": SECTION_HEADINGS,
        "placeholder_title": PLACEHOLDER_TITLE,
        "deltas": [
            (metric, d, _format_change(d.change)) for metric, d in (stats.deltas or {}).items()
        ],
        "file_stats": stats.file_stats[:MAX_FILE_ROWS],
        "hidden_files": max(0, len(stats.file_stats) - MAX_FILE_ROWS),
    }

    # 4. 加载并渲染模板
    template_name = "report.html.j2"
    try:
        template = env.get_template(template_name)
        logger.info(f"🎨 正在渲染 Jinja2 模板: {template_name}")
        return template.render(**template_context)
    except Exception as e:
        logger.error(f"❌ Jinja2 模板渲染失败: {e}", exc_info=True)
        raise RenderError(f"HTML template rendering failed: {e}") from e


# ---------------------------------------------------------------------
# 分发入口
# ---------------------------------------------------------------------


def render(
    stats: Statistics,
    narrative: NarrativeSections,
    output_format: str,
    length: str,
    metadata: Optional[ReportMetadata] = None,
    global_config: Optional[GlobalConfig] = None,
) -> Union[str, bytes]:
    """
    渲染入口: 返回文本 (markdown/json/html) 或字节 (pdf)。
    pdf 第二阶段失败时抛出 PrintConversionError (携带 HTML)。
    """
    if output_format not in FORMATS:
        raise RenderError(f"Unknown output format: {output_format}")
    if length not in LENGTHS:
        raise RenderError(f"Unknown report length: {length}")
    metadata = metadata or ReportMetadata()
    global_config = global_config or GlobalConfig()

    if output_format == "markdown":
        return generate_markdown_report(stats, narrative, length, metadata)
    if output_format == "json":
        return generate_json_report(stats, narrative, length, metadata)
    if output_format == "html":
        return generate_html_report(stats, narrative, length, metadata, global_config)

    # pdf: HTML -> PDF
    html = generate_html_report(
        stats, narrative, length, metadata, global_config, print_ready=True
    )
    try:
        return pdf_converter.convert_html_to_pdf(html, global_config)
    except PrintConversionError:
        raise
    except Exception as e:
        logger.error(f"❌ PDF 转换异常: {e}", exc_info=True)
        raise PrintConversionError(f"PDF conversion failed: {e}", html=html) from e


# ---------------------------------------------------------------------
# 输出
# ---------------------------------------------------------------------


def default_report_filename(
    output_format: str,
    length: str,
    global_config: GlobalConfig,
    now: Optional[datetime] = None,
) -> str:
    """report-<timestamp>[-<length>].<ext>"""
    timestamp = (now or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")
    length_suffix = f"-{length}" if length != "detailed" else ""
    return (
        f"{global_config.OUTPUT_FILENAME_PREFIX}-{timestamp}{length_suffix}."
        f"{FILE_EXTENSIONS[output_format]}"
    )


def save_report(content: Union[str, bytes], output_path: str) -> Optional[str]:
    """
    保存报告到文件；output_path 为 "-" 时写到 stdout。
    """
    if output_path == "-":
        if isinstance(content, bytes):
            sys.stdout.buffer.write(content)
        else:
            sys.stdout.write(content)
        sys.stdout.flush()
        return None

    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    mode = "wb" if isinstance(content, bytes) else "w"
    encoding = None if isinstance(content, bytes) else "utf-8"
    with open(output_path, mode, encoding=encoding) as f:
        f.write(content)
    logger.info(f"✅ 报告已保存: {output_path}")
    return output_path


def swap_extension(path: str, output_format: str) -> str:
    root, _ = os.path.splitext(path)
    return f"{root}.{FILE_EXTENSIONS[output_format]}"
