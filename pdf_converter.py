# pdf_converter.py
import logging
import os
import subprocess
import tempfile
from typing import Optional

from config import GlobalConfig
from errors import PrintConversionError

logger = logging.getLogger(__name__)


def convert_html_to_pdf(
    html: str, global_config: GlobalConfig, timeout: Optional[float] = None
) -> bytes:
    """
    将完整的 HTML 文档转换为 PDF (PrinceXML)
    - CSS 已内嵌在 HTML 中，不再通过 --style 传入
    - 失败时抛出 PrintConversionError，并携带 HTML 以便调用方回退
    """
    timeout = timeout or global_config.PDF_CONVERT_TIMEOUT

    with tempfile.TemporaryDirectory(prefix="devsum-pdf-") as tmp_dir:
        html_path = os.path.join(tmp_dir, "report.html")
        pdf_path = os.path.join(tmp_dir, "report.pdf")
        with open(html_path, "w", encoding="utf-8") as f:
            f.write(html)

        command = [global_config.PRINCE_BINARY, html_path, "-o", pdf_path]
        logger.info("🖨️ 正在调用 PrinceXML 生成 PDF...")

        try:
            result = subprocess.run(
                command, capture_output=True, text=True, timeout=timeout
            )
        except FileNotFoundError as e:
            logger.error(
                f"❌ 系统未找到 '{global_config.PRINCE_BINARY}' 命令，请检查 PrinceXML 是否已安装。"
            )
            raise PrintConversionError(
                f"PDF converter '{global_config.PRINCE_BINARY}' not found", html=html
            ) from e
        except subprocess.TimeoutExpired as e:
            logger.error(f"❌ PrinceXML 超时 ({timeout}s)")
            raise PrintConversionError(
                f"PDF conversion timed out after {timeout}s", html=html
            ) from e

        if result.returncode != 0:
            logger.error(f"❌ PrinceXML 失败: {result.stderr}")
            raise PrintConversionError(
                f"PDF converter exited with code {result.returncode}: {result.stderr.strip()}",
                html=html,
            )

        if not os.path.exists(pdf_path):
            logger.error("❌ PDF 文件未生成 (未知错误)")
            raise PrintConversionError("PDF converter produced no output", html=html)

        with open(pdf_path, "rb") as f:
            data = f.read()

    logger.info(f"✅ PDF 已生成 ({len(data)} bytes)")
    return data
