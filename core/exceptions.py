"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理
"""


class RaffleException(Exception):
    """所有 Raffle 異常的基類"""
    pass


# ============ Raffle 相關異常 ============

class RaffleNotFound(RaffleException):
    """Raffle 不存在"""
    def __init__(self, raffle_id):
        self.raffle_id = raffle_id
        super().__init__(f"Raffle {raffle_id} not found")


class ParticipantNotFound(RaffleException):
    """參加者索引超出範圍"""
    def __init__(self, index, participant_count):
        self.index = index
        self.participant_count = participant_count
        super().__init__(
            f"No participant at index {index} ({participant_count} participants)"
        )


# ============ Entry 相關異常 ============

class NotOpenError(RaffleException):
    """Raffle 不在 OPEN 狀態，不接受報名"""
    def __init__(self, state):
        self.state = state
        super().__init__(f"Raffle not open (state: {getattr(state, 'value', state)})")


class InsufficientFeeError(RaffleException):
    """支付金額低於報名費"""
    def __init__(self, amount, entrance_fee):
        self.amount = amount
        self.entrance_fee = entrance_fee
        super().__init__(
            f"Sent {amount}, entrance fee is {entrance_fee}"
        )


# ============ Upkeep 相關異常 ============

class UpkeepNotNeededError(RaffleException):
    """Upkeep 條件不成立（帶診斷資訊）"""
    def __init__(self, balance, participant_count, state):
        self.balance = balance
        self.participant_count = participant_count
        self.state = state
        super().__init__(
            f"Upkeep not needed (balance={balance}, "
            f"participants={participant_count}, "
            f"state={getattr(state, 'value', state)})"
        )


# ============ 隨機數回呼相關異常 ============

class NotCalculatingError(RaffleException):
    """Raffle 不在 CALCULATING 狀態，不接受回呼"""
    def __init__(self, state):
        self.state = state
        super().__init__(
            f"Raffle not calculating winner (state: {getattr(state, 'value', state)})"
        )


class UnknownRequestError(RaffleException):
    """回呼的 request id 不是目前待處理的請求"""
    def __init__(self, request_id, pending_request_id):
        self.request_id = request_id
        self.pending_request_id = pending_request_id
        super().__init__(
            f"Request {request_id} is not the pending request ({pending_request_id})"
        )


class InvalidRandomWordsError(RaffleException):
    """隨機數內容不合法（空的或負數）"""
    pass


class RequestNotStale(RaffleException):
    """待處理請求尚未逾時，不能重新請求"""
    pass


class OracleRequestError(RaffleException):
    """向 Oracle 發出請求失敗（perform_upkeep 會補償轉回 OPEN）"""
    pass


# ============ Payout 相關異常 ============

class PayoutTransferFailedError(RaffleException):
    """派彩轉帳失敗（回合狀態已經前進，不會自動重試）"""
    def __init__(self, winner, amount, reason=None):
        self.winner = winner
        self.amount = amount
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Transfer of {amount} to {winner} failed{detail}")


# ============ 狀態轉換異常 ============

class InvalidStateTransition(RaffleException):
    """非法的狀態轉換"""
    pass
