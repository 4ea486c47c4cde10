import logging
import re

import streamlit as st
import streamlit.components.v1 as components

import pipe_core
import pipe_render

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')

st.set_page_config(page_title="Pipe Puzzle", layout="wide")
st.title("Pipe Puzzle")

with st.sidebar:
    st.header("Puzzle")

    use_seed = st.checkbox("Fixed seed", value=False,
                           help="Replay the same sequence of puzzles")
    seed = st.number_input("Seed", min_value=0, value=42, step=1) if use_seed else None

    if st.button("New Game", type="primary"):
        st.session_state.pop('session', None)

    st.header("Render Settings")
    stroke_width = st.slider("Stroke Width", 0.5, 4.0, 1.5, 0.1)
    half_width = st.slider("Pipe Width", 6, 40, 18, 1,
                           help="Half-width of a pipe (out of 50 half-cell)")
    zoom_level = st.slider("Zoom", 25, 100, 60, 5, help="Board size as % of the window")

    with st.expander("Tile Catalog"):
        for name, tile in pipe_render.CATALOG_TILES:
            st.caption(name)
            st.markdown(pipe_render.render_single_tile(tile), unsafe_allow_html=True)

render_params = {'stroke_width': stroke_width, 'half_width': half_width}

if 'session' not in st.session_state:
    st.session_state.session = pipe_core.PuzzleSession(
        seed=int(seed) if seed is not None else None)

session = st.session_state.session

st.subheader("Level {} ({}x{})".format(session.level, session.grid_size, session.grid_size))

svg_string = pipe_render.render_session_svg(session, render_params=render_params)
# Make SVG responsive for display
display_svg = re.sub(r'width="\d+"', 'width="100%"', svg_string, count=1)
display_svg = re.sub(r'height="\d+"', 'height="100%"', display_svg, count=1)

board_col, controls_col = st.columns([3, 2])

with board_col:
    html_content = f'''
    <div style="background:#f0f0f0; height:100%; display:flex; align-items:center;
                justify-content:center; overflow:auto; padding:20px; box-sizing:border-box;">
        <div style="background:white; padding:10px; box-shadow: 0 2px 8px rgba(0,0,0,0.1);">
            <div style="width:{zoom_level}vmin; height:{zoom_level}vmin;">
                {display_svg}
            </div>
        </div>
    </div>
    '''
    components.html(html_content, height=700, scrolling=True)

with controls_col:
    st.caption("Click a tile to rotate it clockwise")
    for row in range(session.grid_size):
        cols = st.columns(session.grid_size)
        for col in range(session.grid_size):
            tile = session.tile_at(row, col)
            if cols[col].button("`{}`".format(pipe_core.tile_char(tile)), key="tile-{}-{}".format(row, col),
                                disabled=tile.is_empty):
                session.rotate_tile(row, col)
                st.rerun()

    if session.is_won:
        st.success("Solved!")
        if st.button("Next Level", type="primary"):
            session.advance_level()
            st.rerun()

    if st.button("Reset"):
        session.reset_puzzle()
        st.rerun()

st.download_button(
    "Download SVG",
    svg_string,
    file_name="pipe-puzzle-level-{}.svg".format(session.level),
    mime="image/svg+xml"
)
