import os
import time

import requests
import streamlit as st

API_BASE = os.getenv("C4_DRAWIO_API_BASE", os.getenv("API_BASE", "http://localhost:8080")).rstrip("/")
DIRECTIONS = {
    "Top to bottom": "TB",
    "Left to right": "LR",
    "Bottom to top": "BT",
    "Right to left": "RL",
}
# Only gateway-level failures are worth retrying; a 500 from /convert is a conversion error
TRANSIENT_STATUS = {502, 503, 504}

EXAMPLE = """@startuml
title Online Shop - System Context

Person(customer, "Customer", "Buys products online")
System(shop, "Online Shop", "Lets customers browse and order products")
System_Ext(payments, "Payment Provider", "Handles card payments")

Rel(customer, shop, "Places orders", "HTTPS")
Rel(shop, payments, "Charges cards", "REST/JSON")
@enduml
"""


def _reset_state():
    for key in ["result_xml", "error"]:
        if key in st.session_state:
            del st.session_state[key]
    st.session_state["source"] = ""


def _health() -> str:
    try:
        resp = requests.get(f"{API_BASE}/health", timeout=5)
        data = resp.json()
    except Exception as e:
        return f"unreachable ({e})"
    return f"{data.get('status', 'unknown')} (v{data.get('version', '?')})"


def _convert(source: str, params: dict[str, str]) -> str | None:
    max_attempts = 3
    backoff = 0.5
    for attempt in range(1, max_attempts + 1):
        try:
            resp = requests.post(
                f"{API_BASE}/convert",
                params=params,
                data=source.encode("utf-8"),
                headers={"Content-Type": "text/plain; charset=utf-8"},
                timeout=60,
            )
        except requests.RequestException as e:
            if attempt < max_attempts:
                time.sleep(backoff)
                backoff *= 1.5
                continue
            st.session_state["error"] = f"Failed to connect to API: {e}"
            return None
        if resp.status_code == 200:
            return resp.text
        if resp.status_code in TRANSIENT_STATUS and attempt < max_attempts:
            time.sleep(backoff)
            backoff *= 1.5
            continue
        st.session_state["error"] = f"{resp.status_code}: {resp.text}"
        return None
    return None


def main() -> None:
    st.set_page_config(page_title="C4-PlantUML to draw.io", page_icon="🧭", layout="wide")
    st.title("C4-PlantUML to draw.io")
    st.caption(f"API base: {API_BASE} · health: {_health()}")

    col1, col2 = st.columns([1, 1])
    with col1:
        if st.button("Load example", type="secondary"):
            st.session_state["source"] = EXAMPLE
    with col2:
        if st.button("Restart", type="secondary"):
            _reset_state()
            st.rerun()

    source = st.text_area("PlantUML input", key="source", height=360)

    c1, c2, c3, c4, c5 = st.columns(5)
    direction = c1.selectbox("Direction", list(DIRECTIONS))
    nodesep = c2.number_input("Node gap", min_value=0, max_value=400, value=60)
    ranksep = c3.number_input("Rank gap", min_value=0, max_value=400, value=80)
    marginx = c4.number_input("Margin X", min_value=0, max_value=200, value=20)
    marginy = c5.number_input("Margin Y", min_value=0, max_value=200, value=20)

    if st.button("Convert", type="primary"):
        st.session_state.pop("error", None)
        st.session_state.pop("result_xml", None)
        if not source.strip():
            st.session_state["error"] = "Please enter PlantUML content"
        else:
            params = {
                "direction": DIRECTIONS[direction],
                "nodesep": str(nodesep),
                "ranksep": str(ranksep),
                "marginx": str(marginx),
                "marginy": str(marginy),
            }
            with st.spinner("Converting..."):
                xml = _convert(source, params)
            if xml is not None:
                st.session_state["result_xml"] = xml

    if "result_xml" in st.session_state:
        xml = st.session_state["result_xml"]
        st.success("Conversion complete. Open the downloaded file in draw.io.")
        st.download_button(
            label="Download .drawio",
            data=xml.encode("utf-8"),
            file_name="diagram.drawio",
            mime="application/xml",
        )
        with st.expander("XML preview"):
            st.code(xml, language="xml")

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
