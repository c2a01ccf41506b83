"""
Chart endpoints: shaped data and ready-to-render ECharts options.
"""
from typing import List

from fastapi import APIRouter

from manifest_viewer.schemas.chart import ChartPoint, ChartRender, ChartRequest
from manifest_viewer.services.chart_data import generate_chart_data
from manifest_viewer.services.chart_options import render_chart

router = APIRouter()


@router.post("/render", response_model=ChartRender)
async def render(request: ChartRequest):
    return render_chart(request.manifest, request.spec, title=request.title)


@router.post("/data", response_model=List[ChartPoint])
async def chart_data(request: ChartRequest):
    return generate_chart_data(request.manifest, request.spec)
