"""
Central warning filter configuration for engine runtime processes.
"""

import warnings


def configure_warning_filters() -> None:
    """Silence known noisy library warnings raised while decoding quotes."""
    warnings.filterwarnings(
        "ignore",
        message="Cannot parse header or footer",
        module=r"openpyxl\.worksheet\.header_footer",
    )
    warnings.filterwarnings(
        "ignore",
        message=r".*extension is not supported and will be removed",
        module=r"openpyxl\.worksheet\._reader",
    )
    warnings.filterwarnings(
        "ignore",
        message="Workbook contains no default style",
        module=r"openpyxl\.styles\.stylesheet",
    )
    warnings.filterwarnings(
        "ignore",
        message=r"CropBox missing from /Page",
        module=r"pdfplumber\.page",
    )
