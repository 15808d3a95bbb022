from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request

from app.schemas.quote import Market

router = APIRouter()

_MARKETS = [m.value for m in Market]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_market(market: str) -> Market:
    try:
        return Market(market.lower())
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid market. Use: {', '.join(_MARKETS)}",
        ) from exc


def _raise_for_trigger(result) -> None:
    if result.status == 'already-running':
        raise HTTPException(status_code=409, detail='REFRESH_ALREADY_RUNNING')
    if result.status == 'failed':
        raise HTTPException(status_code=503, detail=result.error or 'REFRESH_FAILED')


@router.get('/')
def service_info():
    return {
        'status': 'online',
        'service': 'Market Snapshot Gateway',
        'markets': _MARKETS,
        'endpoints': {
            'allMarkets': '/api/stocks',
            'specificMarket': '/api/stocks/{market}',
            'refresh': '/api/refresh',
            'refreshMarket': '/api/refresh/{market}',
            'search': '/api/search?q=',
        },
    }


@router.get('/api/stocks')
def get_all_stocks(request: Request):
    state = request.app.state.cache_store.state()
    snapshot = state.snapshot
    return {
        'success': True,
        'data': [q.public_dict() for q in snapshot.quotes],
        'totalStocks': len(snapshot.quotes),
        'lastUpdate': state.last_update.isoformat() if state.last_update else None,
        'version': state.version,
        'sources': {sid: o.model_dump(mode='json') for sid, o in snapshot.source_outcomes.items()},
        'timestamp': _now_iso(),
    }


@router.get('/api/stocks/{market}')
def get_market_stocks(market: str, request: Request):
    target = _parse_market(market)
    state = request.app.state.cache_store.state()
    rows = state.snapshot.partition(target)
    return {
        'success': True,
        'market': target.value,
        'data': [q.public_dict() for q in rows],
        'totalStocks': len(rows),
        'lastUpdate': state.last_update.isoformat() if state.last_update else None,
        'timestamp': _now_iso(),
    }


@router.post('/api/refresh')
def refresh_all(request: Request):
    result = request.app.state.refresh_coordinator.trigger()
    _raise_for_trigger(result)
    snapshot = request.app.state.cache_store.get()
    return {
        'success': True,
        'message': 'All markets refreshed successfully',
        'data': [q.public_dict() for q in snapshot.quotes],
        'totalStocks': len(snapshot.quotes),
        'timestamp': _now_iso(),
    }


@router.post('/api/refresh/{market}')
def refresh_market(market: str, request: Request):
    target = _parse_market(market)
    result = request.app.state.refresh_coordinator.trigger(target)
    _raise_for_trigger(result)
    rows = request.app.state.cache_store.get_partition(target)
    return {
        'success': True,
        'market': target.value,
        'message': f'{target.value} market refreshed successfully',
        'data': [q.public_dict() for q in rows],
        'totalStocks': len(rows),
        'timestamp': _now_iso(),
    }


@router.get('/api/search')
def search_stocks(request: Request, q: str = ''):
    if not q.strip():
        raise HTTPException(status_code=400, detail='Query parameter "q" is required')
    rows = request.app.state.cache_store.search(q)
    return {
        'success': True,
        'query': q,
        'data': [row.public_dict() for row in rows],
        'totalResults': len(rows),
    }


@router.get('/api/metrics/refresh')
def refresh_metrics(request: Request):
    metrics = request.app.state.refresh_coordinator.status()
    metrics.update(request.app.state.cache_store.metrics())
    return metrics
