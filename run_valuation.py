#!/usr/bin/env python3
"""
Valuation Engine - Command-Line DCF Demo
========================================

Resolves a ticker through the cache and provider chain, prints the canonical
data and heuristic suggestions, and runs a DCF valuation.

Data:
- Quote, 10-year FCF history and 5-year valuation ratios
- Alpha Vantage when ALPHA_VANTAGE_API_KEY is set, Yahoo Finance otherwise

Heuristics:
- Suggested WACC (CAPM or sector table)
- Growth rate (analyst 5y, conservative FCF CAGR, or default)

DCF:
- Year-by-year projection, Gordon Growth terminal value
- Intrinsic value per share with market comparison

Usage:
    python run_valuation.py                       # Analyze Apple (default)
    python run_valuation.py MSFT                  # Analyze Microsoft
    python run_valuation.py AAPL --refresh        # Force refresh (bypass cache)
    python run_valuation.py AAPL --cache-only     # Serve from cache only
    python run_valuation.py AAPL --growth 0.08 --discount 0.09 --years 10
    python run_valuation.py AAPL --save           # Save parameters and result
    python run_valuation.py --history             # List saved analyses
    python run_valuation.py AAPL --advice-prompt  # Print advisor prompt
    python run_valuation.py AAPL --advice-reply reply.txt  # Apply advisor reply

Version: 1.0.0
"""

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

from valuation_engine import (
    CanonicalPayload,
    DCFResult,
    EngineConfig,
    FallbackOrchestrator,
    FileCacheGateway,
    build_advice_prompt,
    compute_dcf,
    default_dcf_params,
    parse_advice_response,
    resolve_growth_rate,
    suggest_growth_rate_from_history,
    valuation_signal,
    __version__,
)


# =============================================================================
# FORMATTING HELPERS
# =============================================================================

def format_currency(value, scale=1e9, suffix="B"):
    """Format value as currency with scale."""
    if value is None:
        return "N/A"
    return f"${value/scale:,.2f}{suffix}"


def format_number(value, decimals=2):
    """Format numeric value."""
    if value is None:
        return "N/A"
    if abs(value) >= 1e9:
        return f"{value/1e9:,.2f}B"
    elif abs(value) >= 1e6:
        return f"{value/1e6:,.2f}M"
    elif abs(value) >= 1e3:
        return f"{value/1e3:,.2f}K"
    else:
        return f"{value:,.{decimals}f}"


def format_percent(value, decimals=2):
    """Format value as percentage."""
    if value is None:
        return "N/A"
    return f"{value*100:.{decimals}f}%"


def format_ratio(value):
    return f"{value:.1f}x" if value is not None else "N/A"


def print_line(char="=", length=80):
    """Print separator line."""
    print(char * length)


def print_header(title):
    """Print section header."""
    print()
    print_line("=")
    print(f"  {title}")
    print_line("=")


def print_subheader(title):
    """Print subsection header."""
    print()
    print(f"  {title}")
    print_line("-", 50)


# =============================================================================
# OUTPUT FUNCTIONS
# =============================================================================

def print_banner():
    """Print application banner."""
    print()
    print_line()
    print("  VALUATION ENGINE")
    print("  Provider Aggregation, Heuristics & DCF")
    print(f"  Version: {__version__}")
    print_line()


def print_quote(payload: CanonicalPayload):
    """Print quote section."""
    q = payload.quote
    print_header(f"QUOTE: {q.symbol}")
    print(f"  Company:                  {q.name or 'N/A'}")
    print(f"  Price:                    {f'${q.price:.2f}' if q.price is not None else 'N/A'} {q.currency or ''}")
    print(f"  Change:                   {format_number(q.change)} ({format_number(q.change_percent)}%)")
    print(f"  Market Cap:               {format_currency(q.market_cap)}")
    print(f"  Shares Outstanding:       {format_number(q.shares_outstanding)}")
    print(f"  Trailing / Forward P/E:   {format_number(q.trailing_pe)} / {format_number(q.forward_pe)}")
    print(f"  Data Source:              {payload.data_source}{' (cached)' if payload.from_cache else ''}")


def print_fcf_history(payload: CanonicalPayload):
    """Print FCF history table."""
    print_subheader("Free Cash Flow History")
    if not payload.fcf_history:
        print("  No FCF history available")
        return
    print(f"  {'Year End':<12} {'Operating CF':>14} {'CapEx':>14} {'FCF':>14}")
    print_line("-", 58)
    for entry in payload.fcf_history:
        year_end = datetime.fromtimestamp(entry.date / 1000, tz=timezone.utc).strftime("%Y-%m-%d")
        print(f"  {year_end:<12} {format_currency(entry.operating_cash_flow):>14} "
              f"{format_currency(entry.capital_expenditure):>14} {format_currency(entry.free_cash_flow):>14}")


def print_valuation_metrics(payload: CanonicalPayload):
    """Print the most recent valuation-ratio samples."""
    if not payload.valuation_metrics:
        return
    print_subheader("Valuation Ratios (latest 12 months)")
    print(f"  {'Month':<9} {'Price':>10} {'P/S':>8} {'P/E':>8} {'P/FCF':>8}")
    print_line("-", 47)
    for entry in payload.valuation_metrics[-12:]:
        month = f"{entry.year}-{entry.month:02d}" if entry.month else str(entry.year)
        price = f"${entry.price:.2f}" if entry.price is not None else "N/A"
        print(f"  {month:<9} {price:>10} {format_ratio(entry.ps):>8} "
              f"{format_ratio(entry.pe_gaap):>8} {format_ratio(entry.pfcf):>8}")


def print_heuristics(payload: CanonicalPayload, config: EngineConfig):
    """Print growth and discount-rate suggestions."""
    print_subheader("Heuristic Suggestions")
    growth = resolve_growth_rate(payload.analyst_growth_rate_5y, payload.fcf_values, config.heuristics)
    history = suggest_growth_rate_from_history(payload.fcf_values, config.heuristics)
    print(f"  Growth Rate:              {format_percent(growth.rate)}  [{growth.source}]")
    print(f"  Full-History FCF CAGR:    {format_percent(history)}")
    if payload.suggested_wacc is not None:
        print(f"  Suggested WACC:           {format_percent(payload.suggested_wacc)}  [{payload.wacc_source}]")
    else:
        print("  Suggested WACC:           N/A")
    if payload.saved_dcf_params is not None:
        saved = payload.saved_dcf_params
        print(f"  Saved Parameters:         g={format_percent(saved.growth_rate)}, "
              f"r={format_percent(saved.discount_rate)}, "
              f"g_term={format_percent(saved.terminal_growth_rate)}, "
              f"{saved.projection_years} years")


def print_dcf_projection(result: DCFResult, years: int):
    """Print DCF projection details."""
    print_header(f"DCF PROJECTION ({years}-YEAR)")

    print_subheader("Projected Free Cash Flows")
    print(f"  {'Year':<6} {'FCF':>14} {'Discount':>10} {'PV':>14}")
    print_line("-", 50)
    for yp in result.projections:
        print(f"  {yp.year:<6} {format_currency(yp.fcf):>14} "
              f"{yp.discount_factor:>10.4f} {format_currency(yp.present_value):>14}")
    print_line("-", 50)
    print(f"  {'Sum PV FCF':<17} {'':<10} {format_currency(result.pv_projected_fcf):>14}")

    print_subheader("Terminal Value (Gordon Growth Model)")
    print(f"  Terminal Value:           {format_currency(result.terminal_value)}")
    print(f"  PV of Terminal Value:     {format_currency(result.pv_terminal_value)}")
    if result.terminal_value == 0:
        print("  Note: discount rate does not exceed terminal growth; terminal value omitted")

    print_subheader("Enterprise Value")
    print(f"  Enterprise Value:         {format_currency(result.enterprise_value)}")
    print(f"  Terminal Value % of EV:   {format_percent(result.terminal_value_pct)}")


def print_valuation_summary(result: DCFResult, payload: CanonicalPayload):
    """Print final valuation summary."""
    print_header("DCF VALUATION SUMMARY")
    price = payload.quote.price
    print(f"  Intrinsic Value/Share:    ${result.intrinsic_value_per_share:.2f}")
    if price:
        print(f"  Current Market Price:     ${price:.2f}")
        print(f"  Upside/(Downside):        {format_percent(result.upside_vs(price))}")
        print(f"  Valuation Signal:         "
              f"{valuation_signal(result.intrinsic_value_per_share, price).value.upper()}")
    else:
        print("  Current price not available")


def print_history(cache: FileCacheGateway):
    """Print saved analyses, most recently updated first."""
    print_header("ANALYSIS HISTORY")
    records = cache.list_history()
    if not records:
        print("  No cached analyses")
        return
    print(f"  {'Symbol':<8} {'Updated':<20} {'Price':>10} {'Intrinsic':>10} {'g':>8} {'r':>8}")
    print_line("-", 70)
    for r in records:
        updated = (r.updated_at or "")[:19].replace("T", " ")
        price = r.current_price if r.current_price is not None else r.quote.get("regularMarketPrice")
        price_str = f"${price:.2f}" if isinstance(price, (int, float)) else "N/A"
        iv = f"${r.intrinsic_value_per_share:.2f}" if r.intrinsic_value_per_share is not None else "N/A"
        print(f"  {r.symbol:<8} {updated:<20} {price_str:>10} {iv:>10} "
              f"{format_percent(r.growth_rate, 1):>8} {format_percent(r.discount_rate, 1):>8}")


# =============================================================================
# MAIN
# =============================================================================

def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Valuation Engine - Provider Aggregation, Heuristics & DCF"
    )
    parser.add_argument(
        "ticker",
        nargs="?",
        default="AAPL",
        help="Stock ticker symbol (default: AAPL)"
    )
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Force refresh (bypass cache)"
    )
    parser.add_argument(
        "--cache-only",
        action="store_true",
        help="Serve from cache only; never call providers"
    )
    parser.add_argument("--growth", type=float, default=None, help="Projection growth rate (decimal)")
    parser.add_argument("--discount", type=float, default=None, help="Discount rate / WACC (decimal)")
    parser.add_argument("--terminal", type=float, default=None, help="Terminal growth rate (decimal)")
    parser.add_argument("--years", type=int, default=None, help="Projection years")
    parser.add_argument(
        "--save",
        action="store_true",
        help="Save DCF parameters and result to the cache"
    )
    parser.add_argument(
        "--history",
        action="store_true",
        help="List cached analyses and exit"
    )
    parser.add_argument(
        "--advice-prompt",
        action="store_true",
        help="Print the DCF advisor prompt for this ticker"
    )
    parser.add_argument(
        "--advice-reply",
        type=Path,
        default=None,
        help="File holding an advisor reply to apply as DCF parameters"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress detailed output"
    )

    args = parser.parse_args()

    config = EngineConfig.from_env()
    cache = FileCacheGateway(config.cache.cache_dir)

    print_banner()

    if args.history:
        print_history(cache)
        return 0

    if not config.alpha_vantage.has_credential:
        print("\n  ALPHA_VANTAGE_API_KEY not set - using Yahoo Finance")
        print("  Free key: https://www.alphavantage.co/support/#api-key")

    print(f"\nResolving {args.ticker.upper()}...")
    print("This may take several seconds for fresh data (rate limiting).\n")

    orchestrator = FallbackOrchestrator(config, cache=cache)
    resolution = orchestrator.resolve_ticker(
        args.ticker,
        force_refresh=args.refresh,
        cache_only=args.cache_only,
    )

    if not resolution.ok:
        failure = resolution.failure
        print(f"\nError ({failure.status_code}): {failure.message}")
        return 1

    payload = resolution.payload

    print_quote(payload)
    if not args.quiet:
        print_fcf_history(payload)
        print_valuation_metrics(payload)
    print_heuristics(payload, config)

    if args.advice_prompt:
        print_header("DCF ADVISOR PROMPT")
        print(build_advice_prompt(payload))

    params = default_dcf_params(
        payload,
        growth_rate=args.growth,
        discount_rate=args.discount,
        terminal_growth_rate=args.terminal,
        projection_years=args.years,
        config=config.heuristics,
    )

    if args.advice_reply is not None:
        try:
            advice = parse_advice_response(args.advice_reply.read_text(), config.bounds)
        except (IOError, ValueError) as e:
            print(f"\nError: could not use advisor reply: {e}")
            return 1
        params = advice.apply_to(params)
        print_subheader("Advisor Suggestion")
        print(f"  {advice.reasoning}")

    if params.base_fcf == 0:
        print("\n  No FCF history available - DCF base is zero")

    result = compute_dcf(params)

    if not args.quiet:
        print_dcf_projection(result, params.projection_years)
    print_valuation_summary(result, payload)

    if args.save:
        price = payload.quote.price
        try:
            saved = cache.save_analysis(
                payload.symbol,
                payload,
                growth_rate=params.growth_rate,
                discount_rate=params.discount_rate,
                terminal_growth_rate=params.terminal_growth_rate,
                projection_years=params.projection_years,
                intrinsic_value_per_share=result.intrinsic_value_per_share,
                current_price=price if price is not None else float("nan"),
            )
        except ValueError as e:
            print(f"\nError: analysis not saved: {e}")
            return 1
        print(f"\n  Analysis {'saved' if saved else 'NOT saved'} to: {cache.cache_dir}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
