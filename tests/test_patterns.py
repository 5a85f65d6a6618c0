"""
Tests for instruction/log pattern matching: routers, ATA lifecycle, transfers.
"""

from __future__ import annotations

import base58

from backend_txengine.solana_listener.parser import parse
from backend_txengine.transactions.ata import compute_ata_analysis
from backend_txengine.transactions.constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    ATA_RENT_LAMPORTS,
    RAYDIUM_AMM,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    WSOL_MINT,
)
from backend_txengine.transactions.patterns import (
    UNKNOWN_MINT,
    describe_program,
    match_patterns,
)
from backend_txengine.transactions.types import AtaOperationType
from txbuilders import (
    MINT,
    OTHER_ATA,
    OTHER_WALLET,
    WALLET,
    WALLET_ATA,
    buy_payload,
    failed_sell_payload,
    jupiter_buy_with_ata_payload,
    make_payload,
    parsed_ix,
    raw_ix,
    sell_with_close_payload,
    token_balance,
    unknown_program_payload,
)


def _ops(payload):
    return match_patterns(parse(payload), WALLET)


def test_router_identified_from_program_id():
    ops = _ops(buy_payload())
    assert ops.has_router
    assert ops.router_name == "Raydium"
    assert ops.has_swap_log


def test_jupiter_reports_underlying_venue():
    ops = _ops(jupiter_buy_with_ata_payload())
    assert ops.router_name == "Jupiter (via Raydium)"


def test_no_router_for_unrelated_program():
    ops = _ops(unknown_program_payload())
    assert not ops.has_router
    assert ops.router_name is None


def test_create_idempotent_detected_with_rent():
    ops = _ops(jupiter_buy_with_ata_payload())
    assert len(ops.ata_ops) == 1
    op = ops.ata_ops[0]
    assert op.operation_type is AtaOperationType.CREATION
    assert op.account_address == WALLET_ATA
    assert op.token_mint == MINT
    assert op.rent_lamports == ATA_RENT_LAMPORTS
    assert not op.is_wsol
    assert ops.created_mints == [MINT]


def test_create_idempotent_on_existing_account_is_not_a_creation():
    payload = jupiter_buy_with_ata_payload(
        pre_balances=[1_000_000_000, ATA_RENT_LAMPORTS, 5_000_000_000, 1, 1, 1],
        post_balances=[949_995_000, ATA_RENT_LAMPORTS, 5_050_000_000, 1, 1, 1],
    )
    assert _ops(payload).ata_ops == []


def _ata_created_for_wallet_by(payer, ix):
    return make_payload(
        account_keys=[payer, WALLET_ATA, WALLET, ASSOCIATED_TOKEN_PROGRAM_ID],
        pre_balances=[1_000_000_000, 0, 500_000_000, 1],
        post_balances=[1_000_000_000 - ATA_RENT_LAMPORTS - 5_000, ATA_RENT_LAMPORTS, 500_000_000, 1],
        post_token_balances=[token_balance(1, MINT, WALLET, 0.0)],
        instructions=[ix],
    )


def test_ata_created_for_wallet_by_someone_else_carries_no_rent():
    ix = parsed_ix(
        ASSOCIATED_TOKEN_PROGRAM_ID,
        "createIdempotent",
        {"source": OTHER_WALLET, "account": WALLET_ATA, "wallet": WALLET, "mint": MINT},
    )
    ops = _ops(_ata_created_for_wallet_by(OTHER_WALLET, ix))
    assert [(o.operation_type, o.account_address, o.rent_lamports) for o in ops.ata_ops] == [
        (AtaOperationType.CREATION, WALLET_ATA, 0)
    ]
    analysis = compute_ata_analysis(ops.ata_ops)
    assert analysis.total_ata_creations == 1
    assert analysis.total_rent_spent == 0
    assert analysis.net_rent_impact == 0


def test_unparsed_ata_create_paid_by_someone_else_carries_no_rent():
    ix = raw_ix(ASSOCIATED_TOKEN_PROGRAM_ID, [OTHER_WALLET, WALLET_ATA, WALLET, MINT], "")
    ops = _ops(_ata_created_for_wallet_by(OTHER_WALLET, ix))
    assert len(ops.ata_ops) == 1
    assert ops.ata_ops[0].operation_type is AtaOperationType.CREATION
    assert ops.ata_ops[0].rent_lamports == 0


def test_ata_created_by_wallet_for_someone_else_carries_rent():
    ix = parsed_ix(
        ASSOCIATED_TOKEN_PROGRAM_ID,
        "create",
        {"source": WALLET, "account": OTHER_ATA, "wallet": OTHER_WALLET, "mint": MINT},
    )
    payload = make_payload(
        account_keys=[WALLET, OTHER_ATA, OTHER_WALLET, ASSOCIATED_TOKEN_PROGRAM_ID],
        pre_balances=[1_000_000_000, 0, 500_000_000, 1],
        post_balances=[1_000_000_000 - ATA_RENT_LAMPORTS - 5_000, ATA_RENT_LAMPORTS, 500_000_000, 1],
        instructions=[ix],
    )
    ops = _ops(payload)
    assert [(o.account_address, o.rent_lamports) for o in ops.ata_ops] == [(OTHER_ATA, ATA_RENT_LAMPORTS)]


def test_close_account_detected_with_mint_from_snapshot():
    ops = _ops(sell_with_close_payload())
    assert [(o.operation_type, o.account_address, o.token_mint) for o in ops.ata_ops] == [
        (AtaOperationType.CLOSURE, WALLET_ATA, MINT)
    ]
    assert ops.ata_ops[0].rent_lamports == ATA_RENT_LAMPORTS


def test_close_account_from_log_when_instructions_unparsed():
    program = "Vote111111111111111111111111111111111111111"
    payload = make_payload(
        account_keys=[WALLET, program],
        pre_balances=[1_000_000_000, 1],
        post_balances=[1_002_034_280, 1],
        instructions=[raw_ix(program, [WALLET], "3Bxs")],
        log_messages=[
            f"Program {TOKEN_PROGRAM_ID} invoke [2]",
            "Program log: Instruction: CloseAccount",
            f"Program {TOKEN_PROGRAM_ID} success",
        ],
    )
    ops = _ops(payload)
    assert len(ops.ata_ops) == 1
    assert ops.ata_ops[0].source == "log"
    assert ops.ata_ops[0].token_mint == UNKNOWN_MINT


def test_failed_transaction_has_no_ata_ops():
    ops = _ops(failed_sell_payload())
    assert ops.ata_ops == []
    assert ops.has_sell_log
    assert not ops.has_buy_log


def test_transfer_checked_extracts_owners_and_amount():
    payload = make_payload(
        account_keys=[WALLET, WALLET_ATA, OTHER_ATA, TOKEN_PROGRAM_ID],
        pre_balances=[1, 1, 1, 1],
        post_balances=[1, 1, 1, 1],
        pre_token_balances=[],
        post_token_balances=[],
        instructions=[
            parsed_ix(
                TOKEN_PROGRAM_ID,
                "transferChecked",
                {
                    "source": WALLET_ATA,
                    "destination": OTHER_ATA,
                    "mint": WSOL_MINT,
                    "authority": WALLET,
                    "tokenAmount": {"uiAmount": 0.25, "decimals": 9, "amount": "250000000"},
                },
            )
        ],
    )
    [transfer] = _ops(payload).token_transfers
    assert transfer.mint == WSOL_MINT
    assert transfer.from_address == WALLET
    assert transfer.to_address == OTHER_ATA
    assert transfer.amount == 0.25


def test_malformed_instruction_is_skipped_not_fatal():
    bad = parsed_ix(
        TOKEN_PROGRAM_ID,
        "transfer",
        {"source": WALLET_ATA, "destination": OTHER_ATA, "mint": MINT, "amount": "not-a-number"},
    )
    good = parsed_ix(
        SYSTEM_PROGRAM_ID,
        "transfer",
        {"source": WALLET, "destination": OTHER_WALLET, "lamports": 1_000},
    )
    payload = make_payload(
        account_keys=[WALLET, OTHER_WALLET],
        pre_balances=[10_000, 0],
        post_balances=[4_000, 1_000],
        instructions=[bad, good],
    )
    ops = _ops(payload)
    assert ops.token_transfers == []
    assert [(t.source, t.destination, t.lamports) for t in ops.native_transfers] == [
        (WALLET, OTHER_WALLET, 1_000)
    ]
    assert len(ops.instructions) == 2


def test_raw_system_transfer_is_decoded():
    data = base58.b58encode((2).to_bytes(4, "little") + (1_234).to_bytes(8, "little")).decode()
    payload = make_payload(
        account_keys=[WALLET, OTHER_WALLET, SYSTEM_PROGRAM_ID],
        pre_balances=[10_000, 0, 1],
        post_balances=[3_766, 1_234, 1],
        instructions=[raw_ix(SYSTEM_PROGRAM_ID, [WALLET, OTHER_WALLET], data)],
    )
    [native] = _ops(payload).native_transfers
    assert native.lamports == 1_234
    assert native.destination == OTHER_WALLET


def test_invoke_logs_add_program_ids():
    ops = _ops(buy_payload(instructions=[]))
    assert RAYDIUM_AMM in ops.program_ids
    assert ops.router_name == "Raydium"


def test_describe_program():
    assert describe_program(RAYDIUM_AMM) == "Raydium"
    assert describe_program(TOKEN_PROGRAM_ID) == "Token"
    assert describe_program(SYSTEM_PROGRAM_ID) == "System"
    assert describe_program("SomeProgram111") == "SomeProgram111"
