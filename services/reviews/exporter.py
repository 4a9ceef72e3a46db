"""Export scraping results to JSON, CSV, Excel and a plain-text summary."""

import csv
import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from loguru import logger
from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from lib.tripadvisor.models import Review, ScrapingResult, utc_now_iso


Results = Union[ScrapingResult, Sequence[ScrapingResult]]

REVIEW_COLUMNS: List[Tuple[str, Callable[[Review], object]]] = [
    ("Review ID", lambda r: r.id),
    ("Reviewer Name", lambda r: r.reviewer_name),
    ("Reviewer Location", lambda r: r.reviewer_location or ""),
    ("Rating", lambda r: r.rating),
    ("Review Title", lambda r: r.review_title),
    ("Review Text", lambda r: r.review_text),
    ("Review Date", lambda r: r.review_date),
    ("Helpful Votes", lambda r: r.helpful_votes if r.helpful_votes is not None else ""),
    ("Total Votes", lambda r: r.total_votes if r.total_votes is not None else ""),
    ("Is Verified", lambda r: "" if r.is_verified is None else ("Yes" if r.is_verified else "No")),
    ("Trip Type", lambda r: r.trip_type or ""),
    ("Stay Date", lambda r: r.stay_date or ""),
]
SOURCE_URL_HEADER = "Source URL"

_ILLEGAL_XML_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")


def _is_batch(data: Results) -> bool:
    return not isinstance(data, ScrapingResult)


def _as_list(data: Results) -> List[ScrapingResult]:
    return [data] if isinstance(data, ScrapingResult) else list(data)


def rating_distribution(reviews: Sequence[Review]) -> Dict[int, int]:
    distribution = {stars: 0 for stars in range(1, 6)}
    for review in reviews:
        if review.rating in distribution:
            distribution[review.rating] += 1
    return distribution


def average_rating(reviews: Sequence[Review]) -> float:
    """Average over rated reviews only (rating 0 means unresolved)."""
    rated = [r.rating for r in reviews if r.rating > 0]
    if not rated:
        return 0.0
    return sum(rated) / len(rated)


def text_length_stats(reviews: Sequence[Review]) -> Dict[str, int]:
    if not reviews:
        return {"average": 0, "min": 0, "max": 0}
    lengths = [len(r.review_text) for r in reviews]
    return {
        "average": round(sum(lengths) / len(lengths)),
        "min": min(lengths),
        "max": max(lengths),
    }


class ReviewExporter:
    """Writes results under an output directory.

    Every export_* method accepts a single ScrapingResult or a list of them.
    Lists are written in batch form: JSON gets a batchInfo header, tabular
    formats get one row per review with a Source URL column.
    """

    def __init__(self, output_dir: Union[str, Path] = "./output"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, filename: Optional[str], default: str) -> Path:
        return self.output_dir / (filename or default)

    # =========================================================================
    # JSON
    # =========================================================================

    def export_json(self, data: Results, filename: Optional[str] = None) -> Path:
        path = self._path(filename, f"tripadvisor_reviews_{_timestamp()}.json")
        if _is_batch(data):
            results = _as_list(data)
            payload = {
                "batchInfo": {
                    "totalUrls": len(results),
                    "successfulUrls": sum(1 for r in results if not r.error),
                    "failedUrls": sum(1 for r in results if r.error),
                    "totalReviews": sum(r.scraped_reviews for r in results),
                    "scrapedAt": utc_now_iso(),
                },
                "results": [r.to_dict() for r in results],
            }
        else:
            payload = data.to_dict()

        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info(f"JSON exported: {path}")
        return path

    # =========================================================================
    # Tabular (CSV / Excel)
    # =========================================================================

    def _rows(self, data: Results) -> Tuple[List[str], List[List[object]]]:
        headers = [header for header, _ in REVIEW_COLUMNS]
        batch = _is_batch(data)
        if batch:
            headers = [SOURCE_URL_HEADER] + headers

        rows = []
        for result in _as_list(data):
            for review in result.reviews:
                row = [extract(review) for _, extract in REVIEW_COLUMNS]
                if batch:
                    row = [result.url] + row
                rows.append(row)
        return headers, rows

    def export_csv(self, data: Results, filename: Optional[str] = None) -> Path:
        path = self._path(filename, f"tripadvisor_reviews_{_timestamp()}.csv")
        headers, rows = self._rows(data)
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            writer.writerows(rows)
        logger.info(f"CSV exported: {path} ({len(rows)} reviews)")
        return path

    def export_xlsx(self, data: Results, filename: Optional[str] = None) -> Path:
        path = self._path(filename, f"tripadvisor_reviews_{_timestamp()}.xlsx")
        workbook = self._create_workbook(data)
        workbook.save(path)
        logger.info(f"Excel exported: {path}")
        return path

    def _create_workbook(self, data: Results) -> Workbook:
        workbook = Workbook()
        reviews_sheet = workbook.active
        reviews_sheet.title = "Reviews"
        self._populate_reviews_sheet(reviews_sheet, data)

        results_sheet = workbook.create_sheet("Listings")
        self._populate_listings_sheet(results_sheet, _as_list(data))
        return workbook

    def _populate_reviews_sheet(self, sheet, data: Results) -> None:
        headers, rows = self._rows(data)

        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
        header_alignment = Alignment(horizontal="center", vertical="center")
        thin_border = Border(
            left=Side(style="thin"),
            right=Side(style="thin"),
            top=Side(style="thin"),
            bottom=Side(style="thin"),
        )

        for col, header in enumerate(headers, 1):
            cell = sheet.cell(row=1, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment
            cell.border = thin_border

        for row_idx, row in enumerate(rows, 2):
            for col, value in enumerate(row, 1):
                if isinstance(value, str):
                    value = _ILLEGAL_XML_RE.sub("", value)
                cell = sheet.cell(row=row_idx, column=col, value=value)
                cell.border = thin_border

        # Size columns from the header and the first 100 rows
        for col in range(1, len(headers) + 1):
            max_length = len(headers[col - 1])
            for row_idx in range(2, min(len(rows) + 2, 100)):
                cell_value = sheet.cell(row=row_idx, column=col).value
                if cell_value:
                    max_length = max(max_length, len(str(cell_value)))
            sheet.column_dimensions[get_column_letter(col)].width = min(max_length + 2, 60)
        sheet.freeze_panes = "A2"

    def _populate_listings_sheet(self, sheet, results: List[ScrapingResult]) -> None:
        headers = ["URL", "Business Name", "Location", "Overall Rating", "Scraped", "Total Cached", "Status"]
        for col, header in enumerate(headers, 1):
            sheet.cell(row=1, column=col, value=header).font = Font(bold=True)

        for row_idx, result in enumerate(results, 2):
            values = [
                result.url,
                result.business_name or "",
                result.business_location or "",
                result.overall_rating or "",
                result.scraped_reviews,
                result.total_reviews,
                f"FAILED: {result.error}" if result.error else "SUCCESS",
            ]
            for col, value in enumerate(values, 1):
                sheet.cell(row=row_idx, column=col, value=value)

        sheet.column_dimensions["A"].width = 60
        sheet.column_dimensions["B"].width = 35

    # =========================================================================
    # Summary
    # =========================================================================

    def export_summary(self, data: Results, filename: Optional[str] = None) -> Path:
        path = self._path(filename, f"scraping_summary_{_timestamp()}.txt")
        if _is_batch(data):
            text = self.batch_summary_text(_as_list(data))
        else:
            text = self.summary_text(data)
        path.write_text(text, encoding="utf-8")
        logger.info(f"Summary exported: {path}")
        return path

    def summary_text(self, result: ScrapingResult) -> str:
        reviews = result.reviews
        lengths = text_length_stats(reviews)
        lines = [
            "TripAdvisor Scraping Summary",
            "============================",
            "",
            "Business Information:",
            f"- Name: {result.business_name or 'N/A'}",
            f"- Location: {result.business_location or 'N/A'}",
            f"- Overall Rating: {result.overall_rating or 'N/A'}",
            "",
            "Scraping Details:",
            f"- URL: {result.url}",
            f"- Scraped At: {result.scraped_at}",
            f"- Total Reviews Cached: {result.total_reviews}",
            f"- Successfully Scraped: {result.scraped_reviews}",
        ]
        if result.termination_reason:
            lines.append(f"- Stopped Because: {result.termination_reason.value}")
        if result.error:
            lines.append(f"- Error: {result.error}")

        lines += [
            "",
            "Review Statistics:",
            f"- Average Rating: {average_rating(reviews):.2f}",
            "- Rating Distribution:",
        ]
        lines += _distribution_lines(reviews)
        lines += [
            "",
            "Review Text Analysis:",
            f"- Average Review Length: {lengths['average']} characters",
            f"- Shortest Review: {lengths['min']} characters",
            f"- Longest Review: {lengths['max']} characters",
            "",
            "Recent Reviews (first 5):",
        ]
        for i, review in enumerate(reviews[:5], 1):
            lines.append(f"{i}. {review.reviewer_name} ({review.rating} stars) - {review.review_date}")
        return "\n".join(lines) + "\n"

    def batch_summary_text(self, results: List[ScrapingResult]) -> str:
        all_reviews = [review for result in results for review in result.reviews]
        successful = [r for r in results if not r.error]
        failed = [r for r in results if r.error]
        success_rate = (len(successful) / len(results) * 100) if results else 0.0

        lines = [
            "TripAdvisor Batch Scraping Summary",
            "==================================",
            "",
            "Batch Information:",
            f"- Total URLs Processed: {len(results)}",
            f"- Successful URLs: {len(successful)}",
            f"- Failed URLs: {len(failed)}",
            f"- Success Rate: {success_rate:.1f}%",
            f"- Total Reviews Scraped: {len(all_reviews)}",
            f"- Scraped At: {utc_now_iso()}",
            "",
            "Overall Review Statistics:",
            f"- Average Rating Across All Listings: {average_rating(all_reviews):.2f}",
            "- Combined Rating Distribution:",
        ]
        lines += _distribution_lines(all_reviews)
        lines += ["", "Individual Listing Results:"]
        for i, result in enumerate(results, 1):
            lines.append("")
            lines.append(f"{i}. {result.business_name or 'Unknown Listing'}")
            lines.append(f"   URL: {result.url}")
            lines.append(f"   Status: {'FAILED' if result.error else 'SUCCESS'}")
            if result.error:
                lines.append(f"   Error: {result.error}")
            else:
                lines.append(f"   Reviews Scraped: {result.scraped_reviews}")
            if result.business_location:
                lines.append(f"   Location: {result.business_location}")
            if result.overall_rating:
                lines.append(f"   Overall Rating: {result.overall_rating}")
        return "\n".join(lines) + "\n"

    # =========================================================================
    # All formats
    # =========================================================================

    def export_all(self, data: Results, base_filename: Optional[str] = None) -> Dict[str, Path]:
        """Write every format. Returns {"json", "csv", "xlsx", "summary"} -> path."""
        base = base_filename or f"tripadvisor_{_timestamp()}"
        if _is_batch(data):
            base = f"{base}_batch"

        logger.info("Exporting data in all formats...")
        paths = {
            "json": self.export_json(data, f"{base}.json"),
            "csv": self.export_csv(data, f"{base}.csv"),
            "xlsx": self.export_xlsx(data, f"{base}.xlsx"),
            "summary": self.export_summary(data, f"{base}_summary.txt"),
        }
        logger.info(f"All exports written to {self.output_dir}")
        return paths


def _distribution_lines(reviews: Sequence[Review]) -> List[str]:
    distribution = rating_distribution(reviews)
    total = len(reviews)
    lines = []
    for stars in range(5, 0, -1):
        count = distribution[stars]
        share = (count / total * 100) if total else 0.0
        lines.append(f"    {stars} stars: {count} reviews ({share:.1f}%)")
    return lines
