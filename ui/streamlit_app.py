import os
import json
from typing import Any, List, Optional, Tuple

import pandas as pd
import streamlit as st
import plotly.graph_objs as go
import sys

# Ensure local src/ is on PYTHONPATH for `regpower` imports
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_DIR = os.path.join(BASE_DIR, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from regpower.attribution import (
    average_position_multiplier,
    correlation_frame,
    estimate_position_multipliers,
    pool_analysis,
    pool_power_correlation,
    positions_frame,
)
from regpower.compare import compare_summaries, summarize
from regpower.config import load_config
from regpower.dataset import load_dataset
from regpower.generator import downloadable_files, list_tasks, read_default_options, run_task
from regpower.models import Dataset
from regpower.snapshot_client import SnapshotClient
from regpower.stats import (
    SampleStats,
    balance_distribution,
    balance_stats,
    distribution_frame,
    stats_frame,
    top_balance_holders,
    top_power_voters,
    voting_power_distribution,
    voting_power_stats,
)
from regpower.storage import SnapshotInfo, SnapshotLoadError, load_snapshot, read_manifest
from regpower.tracker import results_frame, track_address

CFG = load_config()

st.set_page_config(page_title="REG Voting Power", layout="wide")
st.title("REG balances & voting power")
st.caption("Upload a balances and a voting power export, or pick a stored snapshot.")


@st.cache_data(ttl=60)
def list_snapshot_infos() -> List[SnapshotInfo]:
    if CFG.snapshot_base_url:
        client = SnapshotClient(CFG.snapshot_base_url, request_rps=CFG.request_rps)
        try:
            return client.fetch_manifest()
        except SnapshotLoadError:
            return []
        finally:
            client.close()
    return read_manifest(CFG.snapshot_dir)


def fetch_snapshot_docs(snap: SnapshotInfo) -> Tuple[Any, Any]:
    if CFG.snapshot_base_url:
        client = SnapshotClient(CFG.snapshot_base_url, request_rps=CFG.request_rps)
        try:
            return client.fetch_snapshot(snap)
        finally:
            client.close()
    return load_snapshot(CFG.snapshot_dir, snap)


@st.cache_data(ttl=300)
def load_snapshot_dataset(date: str) -> Optional[Dataset]:
    snap = next((s for s in list_snapshot_infos() if s.date == date), None)
    if snap is None:
        return None
    try:
        balances, power = fetch_snapshot_docs(snap)
    except SnapshotLoadError as exc:
        st.warning(str(exc))
        return None
    return load_dataset(balances, power)


@st.cache_data
def parse_uploads(balances_bytes: Optional[bytes], power_bytes: Optional[bytes]) -> Tuple[Dataset, List[str]]:
    errors: List[str] = []
    docs: List[Any] = []
    for label, raw in (("balances", balances_bytes), ("voting power", power_bytes)):
        if raw is None:
            docs.append(None)
            continue
        try:
            docs.append(json.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, ValueError) as exc:
            errors.append(f"Could not read {label} file: {exc}")
            docs.append(None)
    return load_dataset(docs[0], docs[1]), errors


def render_stats(stats: Optional[SampleStats], unit: str):
    if stats is None:
        st.info("No data to display.")
        return
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Addresses", f"{stats.count:,}")
    c2.metric(f"Total {unit}", f"{stats.total:,.2f}")
    c3.metric("Mean", f"{stats.mean:,.2f}")
    c4.metric("Median", f"{stats.median:,.2f}")
    c5, c6, c7 = st.columns(3)
    c5.metric("Min", f"{stats.min:,.2f}")
    c6.metric("Max", f"{stats.max:,.2f}")
    c7.metric("Std dev", f"{stats.std_dev:,.2f}")


def render_distribution_plotly(bins, color: str, x_title: str):
    df = distribution_frame(bins)
    if df.empty:
        st.info("No positive values to bin.")
        return
    fig = go.Figure()
    fig.add_trace(
        go.Bar(
            x=df["label"],
            y=df["count"],
            marker=dict(color=color),
            hovertemplate="%{x}<br>Addresses=%{y}<extra></extra>",
        )
    )
    fig.update_layout(
        height=320,
        margin=dict(l=10, r=10, t=10, b=30),
        showlegend=False,
        xaxis=dict(title=x_title),
        yaxis=dict(title="Addresses"),
    )
    st.plotly_chart(fig, use_container_width=True)


def render_pool_analysis(dataset: Dataset):
    analysis = pool_analysis(dataset)
    if analysis is None:
        st.info("Load a balances file to analyse pools.")
        return
    c1, c2, c3 = st.columns(3)
    c1.metric("Distinct pools", analysis.total_pools)
    c2.metric("V2 REG", f"{analysis.simple.total_reg:,.2f}", help=f"{analysis.simple.count} positions")
    c3.metric("V3 REG", f"{analysis.concentrated.total_reg:,.2f}", help=f"{analysis.concentrated.count} positions")
    rows = []
    for kind, stats in (("v2", analysis.simple), ("v3", analysis.concentrated)):
        for dex, reg in stats.exchanges.items():
            rows.append({"kind": kind, "dex": dex, "reg": reg})
    if not rows:
        st.info("No pool positions in this dataset.")
        return
    df = pd.DataFrame(rows)
    fig = go.Figure()
    for kind, color in (("v2", "#4c78a8"), ("v3", "#e45756")):
        sub = df[df["kind"] == kind]
        if sub.empty:
            continue
        fig.add_trace(go.Bar(x=sub["dex"], y=sub["reg"], name=kind.upper(), marker=dict(color=color)))
    fig.update_layout(
        barmode="group",
        height=320,
        margin=dict(l=10, r=10, t=10, b=30),
        yaxis=dict(title="REG in pools"),
    )
    st.plotly_chart(fig, use_container_width=True)


def render_correlation(dataset: Dataset):
    profiles = pool_power_correlation(dataset)
    if not profiles:
        st.info("No wallet holds both pool positions and voting power.")
        return
    df = correlation_frame(profiles)
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=df["pool_liquidity_reg"],
            y=df["pool_voting_share"],
            mode="markers",
            marker=dict(color=df["boost_multiplier"], colorscale="Viridis", showscale=True, size=8),
            customdata=df[["address", "boost_multiplier"]].to_numpy(),
            hovertemplate="%{customdata[0]}<br>Pool REG=%{x:,.2f}<br>Pool power=%{y:,.2f}<br>Boost=%{customdata[1]:.2f}<extra></extra>",
        )
    )
    fig.update_layout(
        height=380,
        margin=dict(l=10, r=10, t=10, b=30),
        showlegend=False,
        xaxis=dict(title="REG in pools"),
        yaxis=dict(title="Voting power from pools"),
    )
    st.plotly_chart(fig, use_container_width=True, config={"scrollZoom": True})
    st.dataframe(df, use_container_width=True)

    sel = st.selectbox("Wallet positions", options=[p.address for p in profiles])
    profile = next(p for p in profiles if p.address == sel)
    estimates = estimate_position_multipliers(profile, CFG.fallback_multipliers)
    st.caption(
        f"Boost multiplier {profile.boost_multiplier:.2f} | "
        f"REG-weighted position estimate {average_position_multiplier(estimates):.2f}"
    )
    st.dataframe(positions_frame(estimates), use_container_width=True)


def render_tracker(current: Dataset, snaps: List[SnapshotInfo]):
    address = st.text_input("Address to follow", value="")
    if not address.strip():
        return
    with st.spinner("Searching snapshots..."):
        results = track_address(address, None if current.is_empty else current, snaps, fetch_snapshot_docs, max_workers=CFG.tracker_max_workers)
    if not results:
        st.info("Nothing to search: no current data and no snapshots.")
        return
    st.dataframe(results_frame(results), use_container_width=True)


def render_comparison(current: Dataset, snaps: List[SnapshotInfo]):
    if not snaps:
        st.info("No snapshots available.")
        return
    date = st.selectbox("Compare with snapshot", options=[s.date for s in snaps])
    historical = load_snapshot_dataset(date)
    if historical is None:
        st.warning(f"Snapshot {date} could not be loaded.")
        return
    cur = summarize(current)
    hist = summarize(historical)
    delta = compare_summaries(cur, hist)
    c1, c2, c3 = st.columns(3)
    c1.metric("Holders", f"{cur.holder_count:,}", delta=f"{delta.holder_count:+,}")
    c2.metric("Wallets in pools", f"{cur.pool_wallet_count:,}", delta=f"{delta.pool_wallet_count:+,}")
    c3.metric("Total voting power", f"{cur.total_power:,.2f}", delta=f"{delta.total_power:+,.2f}")


def render_generator():
    tasks = list_tasks(CFG)
    if not tasks:
        st.info(f"No generator tasks found under {CFG.generator_dir}.")
    else:
        task = st.selectbox("Task", tasks)
        options_text = st.text_area("Task options (JSON)", value="{}")
        config_text = st.text_area("Generator config", value=read_default_options(CFG) or "", height=200)
        if st.button("Run task"):
            try:
                options = json.loads(options_text or "{}")
            except ValueError as exc:
                st.error(f"Invalid options JSON: {exc}")
                options = None
            if options is not None:
                with st.spinner(f"Running {task}..."):
                    result = run_task(CFG, task, options, config_text or None)
                if result.success:
                    st.success(f"Task completed: {result.output_file or 'no output file'}")
                else:
                    st.error(result.error or "Generation failed")
                with st.expander("Output"):
                    st.code(result.output[-5000:] if result.output else "")

    files = downloadable_files(CFG.generator_output_dir)
    if not files:
        return
    st.subheader("Generated files")
    for f, path in files:
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except OSError:
            continue
        st.download_button(
            f"{f.name} ({f.size:,} bytes, {f.modified})",
            data=data,
            file_name=f.name,
            mime="application/json" if f.type == "json" else "text/csv",
            key=f"dl-{f.name}",
        )


snaps = list_snapshot_infos()

with st.sidebar:
    source = st.radio("Data source", ["Upload", "Snapshot"], index=0)
    dataset = Dataset()
    if source == "Upload":
        up_bal = st.file_uploader("Balances JSON", type=["json"])
        up_pow = st.file_uploader("Voting power JSON", type=["json"])
        dataset, errors = parse_uploads(up_bal.getvalue() if up_bal else None, up_pow.getvalue() if up_pow else None)
        for err in errors:
            st.error(err)
    elif snaps:
        date = st.selectbox("Snapshot", options=[s.date for s in snaps])
        dataset = load_snapshot_dataset(date) or Dataset()
    else:
        st.info("No snapshots found.")

tab_stats, tab_pools, tab_corr, tab_track, tab_compare, tab_gen = st.tabs(
    ["Statistics", "Pools", "Pool / power", "Address tracker", "Compare", "Generator"]
)

with tab_stats:
    if dataset.is_empty:
        st.info("Load balances and voting power to see statistics.")
    else:
        b_stats = balance_stats(dataset)
        p_stats = voting_power_stats(dataset)
        with st.expander("Summary table"):
            st.dataframe(stats_frame({"balances": b_stats, "voting power": p_stats}), use_container_width=True)
        col_b, col_p = st.columns(2)
        with col_b:
            st.subheader("Balances")
            render_stats(b_stats, "REG")
            render_distribution_plotly(balance_distribution(dataset), "#4c78a8", "REG")
            top = top_balance_holders(dataset, CFG.top_holders_limit)
            st.dataframe(pd.DataFrame([{"address": h.address, "REG": h.amount} for h in top]), use_container_width=True)
        with col_p:
            st.subheader("Voting power")
            render_stats(p_stats, "power")
            render_distribution_plotly(voting_power_distribution(dataset), "#e45756", "Voting power")
            top = top_power_voters(dataset, CFG.top_holders_limit)
            st.dataframe(pd.DataFrame([{"address": h.address, "power": h.amount} for h in top]), use_container_width=True)

with tab_pools:
    render_pool_analysis(dataset)

with tab_corr:
    render_correlation(dataset)

with tab_track:
    render_tracker(dataset, snaps)

with tab_compare:
    if dataset.is_empty:
        st.info("Load current data to compare against a snapshot.")
    else:
        render_comparison(dataset, snaps)

with tab_gen:
    render_generator()
