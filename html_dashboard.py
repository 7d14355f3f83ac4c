"""
HTML Dashboard Generator for AdMob reports.
Renders the revenue chart, the sortable/filterable report table and the
country and app summaries as a single HTML page.
"""

import json
import logging
from html import escape
from typing import Dict, List, Optional
from urllib.parse import urlencode

from config import PAGE_SIZE_CHOICES
from error_handling import DataValidationError, ExportError, handle_pipeline_phase
from formatting import format_count, format_usd
from models import DashboardResult, MetricTotals, SortDirection
from view_state import COLUMNS, ViewResult, ViewState, page_window

logger = logging.getLogger(__name__)

PAGE_STYLE = """
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body {
            font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
            background: #f3f4f6;
            padding: 20px;
            min-height: 100vh;
            color: #333;
        }
        .container { max-width: 1400px; margin: 0 auto; }
        h1 { text-align: center; margin-bottom: 20px; font-size: 2.2em; }
        h2 { font-size: 1.4em; margin: 30px 0 15px; }
        .panel {
            background: white;
            border-radius: 10px;
            padding: 25px;
            box-shadow: 0 4px 6px rgba(0,0,0,0.1);
            margin-bottom: 20px;
        }
        .metrics-grid {
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(250px, 1fr));
            gap: 20px;
            margin-bottom: 20px;
        }
        .metric-label { color: #666; font-size: 0.9em; text-transform: uppercase; letter-spacing: 1px; }
        .metric-value { font-size: 2em; font-weight: bold; margin-top: 10px; }
        .error { background: #fef2f2; border: 1px solid #fecaca; color: #b91c1c; }
        .empty { text-align: center; color: #6b7280; }
        form.filters { display: flex; flex-wrap: wrap; gap: 15px; align-items: flex-end; margin-bottom: 15px; }
        form.filters label { display: block; font-size: 0.85em; color: #555; margin-bottom: 4px; }
        form.filters input, form.filters select { padding: 6px 10px; border: 1px solid #ccc; border-radius: 6px; }
        table { width: 100%; border-collapse: collapse; }
        th, td { padding: 8px 12px; border-top: 1px solid #eee; }
        th { background: #f9fafb; text-align: left; }
        th a { color: inherit; text-decoration: none; }
        .right { text-align: right; }
        .app-id { font-size: 0.75em; color: #6b7280; }
        tfoot td { background: #eff6ff; font-weight: 600; }
        .pager { display: flex; justify-content: space-between; align-items: center; margin-top: 15px; }
        .pager a, .pager span.current { padding: 4px 10px; border: 1px solid #ccc; border-radius: 4px; margin: 0 2px; }
        .pager span.current { background: #3b82f6; color: white; }
        .pager .disabled { opacity: 0.5; pointer-events: none; }
        .columns a { margin-right: 10px; font-size: 0.85em; }
        canvas { max-height: 400px; }
"""


def state_to_query(state: ViewState, start_date: str, end_date: str) -> str:
    """Encode a view state and date range as a dashboard query string."""
    params = [
        ('start', start_date),
        ('end', end_date),
        ('sort', state.sort_key.value),
        ('direction', state.sort_direction.value),
        ('page', state.page),
        ('page_size', state.page_size),
    ]
    for name, value in (('country', state.country_filter), ('app', state.app_filter), ('date', state.date_filter)):
        if value:
            params.append((name, value))
    for key in sorted(column.value for column in state.hidden_columns):
        params.append(('hidden', key))
    return '?' + urlencode(params)


def _totals_cells(totals: MetricTotals, visible_keys: List[str], locale: str) -> str:
    cells = []
    if 'revenue' in visible_keys:
        cells.append(f'<td class="right">{escape(format_usd(totals.revenue_usd, locale))}</td>')
    if 'impressions' in visible_keys:
        cells.append(f'<td class="right">{escape(format_count(totals.impressions, locale))}</td>')
    if 'clicks' in visible_keys:
        cells.append(f'<td class="right">{escape(format_count(totals.clicks, locale))}</td>')
    return ''.join(cells)


def _record_cell(record, key: str, locale: str) -> str:
    if key == 'date':
        return f'<td>{escape(record.date_label)}</td>'
    if key == 'country':
        return f'<td>{escape(record.country)}</td>'
    if key == 'app':
        return f'<td><div>{escape(record.app)}</div><div class="app-id">{escape(record.app_id)}</div></td>'
    if key == 'revenue':
        return f'<td class="right">{escape(format_usd(record.revenue_usd, locale))}</td>'
    if key == 'impressions':
        return f'<td class="right">{escape(format_count(record.impressions, locale))}</td>'
    return f'<td class="right">{escape(format_count(record.clicks, locale))}</td>'


def _render_summary_table(title: str, key_label: str, summary: Dict[str, MetricTotals], locale: str) -> str:
    rows = ''.join(
        f'<tr><td>{escape(key)}</td>'
        f'<td class="right">{escape(format_usd(stats.revenue_usd, locale))}</td>'
        f'<td class="right">{escape(format_count(stats.impressions, locale))}</td>'
        f'<td class="right">{escape(format_count(stats.clicks, locale))}</td></tr>'
        for key, stats in summary.items()
    )
    return f"""
        <h2>{escape(title)}</h2>
        <div class="panel">
            <table>
                <thead><tr><th>{escape(key_label)}</th><th class="right">Revenue</th>
                <th class="right">Impressions</th><th class="right">Clicks</th></tr></thead>
                <tbody>{rows}</tbody>
            </table>
        </div>"""


def _render_filters(view: ViewResult, start_date: str, end_date: str) -> str:
    state = view.state
    country_options = ''.join(f'<option value="{escape(c)}">' for c in view.unique_countries)
    app_options = ''.join(f'<option value="{escape(a)}">' for a in view.unique_apps)
    date_options = ''.join(
        f'<option value="{escape(d)}"{" selected" if d == state.date_filter else ""}>{escape(d)}</option>'
        for d in view.unique_dates
    )
    size_options = ''.join(
        f'<option value="{size}"{" selected" if size == state.page_size else ""}>{size}</option>'
        for size in sorted(set(PAGE_SIZE_CHOICES) | {state.page_size})
    )
    hidden_inputs = ''.join(
        f'<input type="hidden" name="hidden" value="{escape(key.value)}">'
        for key in sorted(state.hidden_columns, key=lambda k: k.value)
    )
    return f"""
            <form class="filters" method="get" action="/">
                <input type="hidden" name="start" value="{escape(start_date)}">
                <input type="hidden" name="end" value="{escape(end_date)}">
                <input type="hidden" name="sort" value="{state.sort_key.value}">
                <input type="hidden" name="direction" value="{state.sort_direction.value}">
                {hidden_inputs}
                <div><label>Filter by Date</label>
                    <select name="date"><option value="">All Dates</option>{date_options}</select></div>
                <div><label>Filter by Country</label>
                    <input name="country" list="countries" value="{escape(state.country_filter)}" placeholder="Search country...">
                    <datalist id="countries">{country_options}</datalist></div>
                <div><label>Filter by App</label>
                    <input name="app" list="apps" value="{escape(state.app_filter)}" placeholder="Search app...">
                    <datalist id="apps">{app_options}</datalist></div>
                <div><label>Rows per page</label><select name="page_size">{size_options}</select></div>
                <div><button type="submit">Apply</button></div>
            </form>"""


def _render_pager(view: ViewResult, start_date: str, end_date: str) -> str:
    state = view.state
    prev_state = state.prev_page(view.page_count)
    next_state = state.next_page(view.page_count)
    buttons = []
    for number in page_window(state.page, view.page_count):
        if number == state.page:
            buttons.append(f'<span class="current">{number}</span>')
        else:
            target = state.go_to_page(number, view.page_count)
            buttons.append(f'<a href="{escape(state_to_query(target, start_date, end_date))}">{number}</a>')
    prev_class = ' class="disabled"' if state.page == 1 else ''
    next_class = ' class="disabled"' if state.page == view.page_count else ''
    return f"""
            <div class="pager">
                <a{prev_class} href="{escape(state_to_query(prev_state, start_date, end_date))}">Previous</a>
                <div>{''.join(buttons)}</div>
                <a{next_class} href="{escape(state_to_query(next_state, start_date, end_date))}">Next</a>
            </div>"""


def _render_table(result: DashboardResult, view: ViewResult, interactive: bool) -> str:
    state = view.state
    start_date = result.start_date.isoformat()
    end_date = result.end_date.isoformat()
    columns = state.visible_columns
    visible_keys = [column.key.value for column in columns]

    headers = []
    for column in columns:
        arrow = ''
        if column.key == state.sort_key:
            arrow = ' &uarr;' if state.sort_direction == SortDirection.ASCENDING else ' &darr;'
        label = f'{escape(column.label)}{arrow}'
        if interactive:
            href = escape(state_to_query(state.request_sort(column.key), start_date, end_date))
            label = f'<a href="{href}">{label}</a>'
        css = ' class="right"' if column.align == 'right' else ''
        headers.append(f'<th{css}>{label}</th>')

    body = ''.join(
        '<tr>' + ''.join(_record_cell(record, key, result.locale) for key in visible_keys) + '</tr>'
        for record in view.page_rows
    )
    label_span = len([key for key in visible_keys if key not in ('revenue', 'impressions', 'clicks')])
    footer = ''
    if label_span:
        footer = f'<tfoot><tr><td colspan="{label_span}">Total</td>' \
                 f'{_totals_cells(result.aggregates.totals, visible_keys, result.locale)}</tr></tfoot>'

    showing = f'Showing {view.first_index} to {view.last_index} of {view.filtered_count} entries'
    if view.is_filtered:
        showing += ' (filtered)'

    parts = []
    if interactive:
        parts.append(_render_filters(view, start_date, end_date))
        toggles = ''.join(
            f'<a href="{escape(state_to_query(state.toggle_column(column.key), start_date, end_date))}">'
            f'{"Show" if column.key in state.hidden_columns else "Hide"} {escape(column.label)}</a>'
            for column in COLUMNS
        )
        parts.append(f'<div class="columns">{toggles}</div>')
    parts.append(f'<p>{escape(showing)}</p>')
    parts.append(f'<table><thead><tr>{"".join(headers)}</tr></thead><tbody>{body}</tbody>{footer}</table>')
    if interactive:
        parts.append(_render_pager(view, start_date, end_date))
    return '\n'.join(parts)


def render_dashboard_page(
    result: DashboardResult,
    view: Optional[ViewResult],
    interactive: bool = True
) -> str:
    """
    Render the dashboard page.

    Args:
        result: Outcome of the latest report load
        view: Derived table view, ignored when the result holds an error
        interactive: Emit filter forms, sort links and pagination

    Returns:
        The HTML document
    """
    if result is None:
        raise DataValidationError("result is required for dashboard rendering")

    locale = result.locale
    start_date = result.start_date.isoformat()
    end_date = result.end_date.isoformat()

    range_form = ''
    if interactive:
        range_form = f"""
        <form class="filters panel" method="get" action="/">
            <div><label>Start date</label><input type="date" name="start" value="{start_date}"></div>
            <div><label>End date</label><input type="date" name="end" value="{end_date}"></div>
            <input type="hidden" name="refresh" value="true">
            <div><button type="submit">Load report</button></div>
            <div><a href="/api/admob/export?format=csv&start={start_date}&end={end_date}">Download CSV</a>
                 <a href="/api/admob/export?format=xlsx&start={start_date}&end={end_date}">Download Excel</a></div>
        </form>"""

    if result.error is not None:
        content = f'<div class="panel error"><p>{escape(result.error)}</p></div>'
        chart_script = ''
    elif result.is_empty or view is None:
        content = '<div class="panel empty"><p>No data available for the selected date range</p></div>'
        chart_script = ''
    else:
        totals = result.aggregates.totals
        content = f"""
        <div class="metrics-grid">
            <div class="panel"><div class="metric-label">Total Revenue</div>
                <div class="metric-value">{escape(format_usd(totals.revenue_usd, locale))}</div></div>
            <div class="panel"><div class="metric-label">Impressions</div>
                <div class="metric-value">{escape(format_count(totals.impressions, locale))}</div></div>
            <div class="panel"><div class="metric-label">Clicks</div>
                <div class="metric-value">{escape(format_count(totals.clicks, locale))}</div></div>
        </div>
        <h2>Revenue Overview</h2>
        <div class="panel"><canvas id="revenueChart"></canvas></div>
        <h2>Detailed Report</h2>
        <div class="panel">{_render_table(result, view, interactive)}</div>
        {_render_summary_table('Summary by Country', 'Country', result.aggregates.summary_by_country, locale)}
        {_render_summary_table('Summary by App', 'App', result.aggregates.summary_by_app, locale)}"""

        labels = [point.date.isoformat() for point in result.daily]
        revenue = [round(point.revenue_usd, 2) for point in result.daily]
        impressions = [point.impressions for point in result.daily]
        clicks = [point.clicks for point in result.daily]
        chart_script = f"""
    <script>
        const ctx = document.getElementById('revenueChart').getContext('2d');
        new Chart(ctx, {{
            type: 'line',
            data: {{
                labels: {json.dumps(labels)},
                datasets: [
                    {{ label: 'Revenue', data: {json.dumps(revenue)}, borderColor: '#8884d8', yAxisID: 'y', borderWidth: 2 }},
                    {{ label: 'Impressions', data: {json.dumps(impressions)}, borderColor: '#82ca9d', yAxisID: 'y1', borderWidth: 2 }},
                    {{ label: 'Clicks', data: {json.dumps(clicks)}, borderColor: '#ffc658', yAxisID: 'y1', borderWidth: 2 }}
                ]
            }},
            options: {{
                responsive: true,
                interaction: {{ mode: 'index', intersect: false }},
                scales: {{
                    y: {{ position: 'left', title: {{ display: true, text: 'Revenue (USD)' }} }},
                    y1: {{ position: 'right', grid: {{ drawOnChartArea: false }} }}
                }}
            }}
        }});
    </script>"""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>AdMob Dashboard</title>
    <script src="https://cdn.jsdelivr.net/npm/chart.js@4.4.0/dist/chart.umd.min.js"></script>
    <style>{PAGE_STYLE}</style>
</head>
<body>
    <div class="container">
        <h1>AdMob Dashboard</h1>
        <p class="empty">{escape(start_date)} to {escape(end_date)}</p>
        {range_form}
        {content}
    </div>
    {chart_script}
</body>
</html>"""


@handle_pipeline_phase(phase_name="EXPORT_HTML", error_cls=ExportError)
def generate_html_dashboard(
    result: DashboardResult,
    view: Optional[ViewResult],
    output_file: str = 'admob_dashboard.html'
) -> None:
    """Write a static, non-interactive dashboard to disk."""
    logger.info("[EXPORT_HTML] Generating HTML dashboard...")
    html_content = render_dashboard_page(result, view, interactive=False)
    with open(output_file, 'w', encoding='utf-8') as f:
        f.write(html_content)
    logger.info("[EXPORT_HTML] Successfully generated %s", output_file)
