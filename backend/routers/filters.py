"""Query parameters shared by the clipper and analytics routes."""

from datetime import date
from typing import Optional

from fastapi import HTTPException, Query, status

from services.post_queries import DateRange, InvalidDateRangeError


def get_date_range(
    from_date: Optional[date] = Query(None, alias="fromDate", description="YYYY-MM-DD, inclusive"),
    to_date: Optional[date] = Query(None, alias="toDate", description="YYYY-MM-DD, inclusive"),
) -> DateRange:
    try:
        return DateRange(from_date, to_date)
    except InvalidDateRangeError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
