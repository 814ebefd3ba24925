from dotenv import load_dotenv
from fastapi import FastAPI

from labctl.api.middleware import AuthMiddleware
from labctl.api.routes import plan, validate
from labctl.config import Config

load_dotenv()
Config.validate()
app = FastAPI(title="labctl", description="Kubernetes lab topology planner")
app.add_middleware(AuthMiddleware)

app.include_router(validate.router)
app.include_router(plan.router)


@app.get("/health")
def health():
    return {"status": "ok"}
