from datetime import datetime, timezone

import fastapi
import uvicorn
from fastapi import File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from config import HOST, MAX_STORED_FILES, PORT, get_cors_origins
from storage import FileStore

file_store = FileStore(max_files=MAX_STORED_FILES)

app = fastapi.FastAPI(title="format-bench upload server")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins() or ["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Cache-Control", "Pragma"],
)


class UploadedFile(BaseModel):
    url: str
    filename: str
    size: int


class UploadResponse(BaseModel):
    files: list[UploadedFile]


def file_url(request: Request, file_id: str) -> str:
    return str(request.url_for("download_file", file_id=file_id))


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "filesStored": len(file_store),
    }


@app.post("/upload", response_model=UploadResponse)
async def upload_file(request: Request, file: UploadFile | None = File(None, alias="files[]")):
    if file is None:
        raise fastapi.HTTPException(status_code=400, detail="No file provided")
    if not (file.content_type or "").startswith("image/"):
        raise fastapi.HTTPException(status_code=400, detail="Only image files are allowed")

    file_bytes = await file.read()
    stored = file_store.put(
        file_bytes,
        original_name=file.filename or "unknown",
        media_type=file.content_type,
    )
    return UploadResponse(
        files=[UploadedFile(url=file_url(request, stored.file_id), filename=stored.filename, size=stored.size)]
    )


@app.get("/file/{file_id}")
async def download_file(file_id: str):
    stored = file_store.get(file_id)
    if stored is None:
        raise fastapi.HTTPException(status_code=404, detail="File not found")
    return fastapi.Response(
        content=stored.data,
        media_type=stored.media_type,
        headers={"Content-Disposition": f'inline; filename="{stored.original_name}"'},
    )


@app.get("/files")
async def list_files(request: Request):
    return {
        "files": [
            {
                "id": f.file_id,
                "filename": f.filename,
                "originalName": f.original_name,
                "size": f.size,
                "uploadTime": f.uploaded_at,
                "url": file_url(request, f.file_id),
            }
            for f in file_store.list_files()
        ]
    }


if __name__ == "__main__":
    uvicorn.run(app, host=HOST, port=PORT)
