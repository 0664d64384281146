import asyncio
import streamlit as st
from moviebot.config import get_config
from moviebot.movie_bot import open_movie_bot
from moviebot.session import MovieBotSession


@st.cache_resource
def get_app_config():
    return get_config()


async def render_turn(session: MovieBotSession, prompt: str, placeholder):
    # each script run has its own thread and event loop, so the clients are
    # opened and closed inside the turn
    async with open_movie_bot(get_app_config()) as bot:
        async for record in session.stream_message(prompt, bot):
            placeholder.markdown(record.display.to_markdown())


st.title("Movie Bot")
st.write("Ask for movie information, cast lists, title searches or filtered movie lists.")

if "session" not in st.session_state:
    st.session_state.session = MovieBotSession()

session: MovieBotSession = st.session_state.session

for record in session.records:
    with st.chat_message(record.role):
        st.markdown(record.display.to_markdown())

if prompt := st.chat_input("Which movie are you curious about?"):
    with st.chat_message("user"):
        st.markdown(prompt)

    with st.chat_message("assistant"):
        placeholder = st.empty()
        try:
            asyncio.run(render_turn(session, prompt, placeholder))
        except Exception as e:
            placeholder.error(f"An error occurred: {str(e)}")
