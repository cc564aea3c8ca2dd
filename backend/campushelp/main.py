from contextlib import asynccontextmanager

from fastapi import FastAPI

from campushelp.database.connection import close_mongo_connection, connect_to_mongo
from campushelp.routers.chats import router as chats_router
from campushelp.routers.help_requests import router as help_requests_router
from campushelp.routers.overlay import router as overlay_router
from campushelp.routers.profile import router as profile_router
from campushelp.routers.questions import router as questions_router
from campushelp.utils.logging import configure_logging
from campushelp.utils.realtime_bus import close_bus, get_bus


configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):

    await connect_to_mongo()
    await get_bus()
    try:
        yield
    finally:
        await close_bus()
        await close_mongo_connection()


app = FastAPI(title="Campus Help", lifespan=lifespan)


app.include_router(help_requests_router)
app.include_router(chats_router)
app.include_router(overlay_router)
app.include_router(questions_router)
app.include_router(profile_router)


@app.get("/")
async def root():

    return {"message": "Campus Help is running"}
