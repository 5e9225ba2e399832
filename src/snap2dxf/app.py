"""
Snap2DXF Web Application.

A FastAPI web server that accepts an image upload, traces its outline and
returns the outline as a DXF file sized in inches.
"""

import io
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import HTMLResponse, StreamingResponse

from .config import ServiceSettings, get_settings
from .converter import convert_image_bytes
from .logging_config import setup_logging

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Snap2DXF",
    description="Convert a black and white image into a DXF outline",
    version="0.1.0"
)


# HTML template for the upload page
HTML_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Snap2DXF</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            background: #f4f5f7;
            display: flex;
            justify-content: center;
            padding: 40px 20px;
        }

        form {
            background: white;
            border-radius: 12px;
            box-shadow: 0 8px 30px rgba(0, 0, 0, 0.12);
            padding: 32px;
            max-width: 420px;
            width: 100%;
            display: grid;
            gap: 14px;
        }

        h1 { margin: 0; font-size: 1.6em; }
        label { display: grid; gap: 4px; color: #444; font-size: 0.9em; }
        input, select { padding: 8px; border: 1px solid #ccc; border-radius: 6px; }

        button {
            padding: 12px;
            background: #2f6fed;
            color: white;
            border: none;
            border-radius: 8px;
            font-size: 1em;
            cursor: pointer;
        }
    </style>
</head>
<body>
    <form action="/convert" method="post" enctype="multipart/form-data">
        <h1>Snap2DXF</h1>
        <p>Upload a black and white image to get its outline as a DXF file.</p>
        <label>Image
            <input type="file" name="file" accept="image/*" required>
        </label>
        <label>Threshold (0-255)
            <input type="number" name="threshold" min="0" max="255" value="{threshold}">
        </label>
        <label>Simplify (0.0-1.0)
            <input type="number" name="simplify" min="0" max="1" step="0.05" value="{simplify}">
        </label>
        <label>Width (inches)
            <input type="number" name="width" min="0.01" step="0.01" value="{width}">
        </label>
        <label>Height (inches)
            <input type="number" name="height" min="0.01" step="0.01" value="{height}">
        </label>
        <label>Size by
            <select name="dimensionControl">
                <option value="width">Width</option>
                <option value="height">Height</option>
            </select>
        </label>
        <button type="submit">Convert &amp; Download</button>
    </form>
</body>
</html>
"""


@app.get("/", response_class=HTMLResponse)
@app.head("/")
async def index(settings: ServiceSettings = Depends(get_settings)):
    """Serve the upload page."""
    return (
        HTML_TEMPLATE
        .replace("{threshold}", str(settings.default_threshold))
        .replace("{simplify}", str(settings.default_simplify))
        .replace("{width}", str(settings.default_width))
        .replace("{height}", str(settings.default_height))
    )


@app.post("/convert")
async def convert_file(
    file: UploadFile = File(...),
    threshold: Optional[int] = Form(None),
    simplify: Optional[float] = Form(None),
    width: Optional[float] = Form(None),
    height: Optional[float] = Form(None),
    dimensionControl: Optional[str] = Form(None),
    settings: ServiceSettings = Depends(get_settings),
):
    """
    Convert an uploaded image to DXF.

    Returns the DXF file as an attachment, with conversion statistics in the
    X-Stats header.
    """
    # Validate file type
    content_type = file.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")

    # Read file content
    content = await file.read()

    if not content:
        raise HTTPException(status_code=400, detail="Empty file uploaded.")

    if len(content) > settings.max_file_size:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size is {settings.max_file_size // (1024 * 1024)}MB."
        )

    try:
        conversion = settings.conversion_settings(
            threshold=threshold,
            simplify=simplify,
            width=width,
            height=height,
            dimension_axis=dimensionControl,
        )
        dxf_content, stats = convert_image_bytes(content, conversion, settings.max_image_dimension)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Conversion failed for %s", file.filename)
        raise HTTPException(
            status_code=500,
            detail=f"Conversion failed: {str(e)}"
        )

    base_name = Path(file.filename or "image").stem
    headers = {
        "Content-Disposition": f'attachment; filename="{base_name}.dxf"',
        "Cache-Control": "no-cache",
        "X-Stats": json.dumps(stats)
    }

    return StreamingResponse(
        io.BytesIO(dxf_content),
        media_type="application/dxf",
        headers=headers
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "snap2dxf",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def main():
    """Run the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
