"""
Solana listener: raw getTransaction payloads in, normalized views out.

parser turns a jsonParsed payload into a TransactionView; rpc_client
fetches payloads and signature pages over JSON-RPC.
"""
