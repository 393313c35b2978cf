import logging


def log_search_info(logger: logging.Logger, depth, score, nodes, elapsed, move, WIN_SCORE):
    nps = int(nodes / elapsed) if elapsed > 0 else 0

    if abs(score) > WIN_SCORE - 100:
        plies = WIN_SCORE - abs(score)
        score_str = f"win in {plies}" if score > 0 else f"loss in {plies}"
    else:
        score_str = f"h {score}"

    logger.debug(
        "info depth %d score %s nodes %d nps %d time %d move %s",
        depth, score_str, nodes, nps, int(elapsed * 1000), move,
    )
